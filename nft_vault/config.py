"""
Configuration management for the vault.
"""
import json
import os
from dataclasses import dataclass, asdict, field


@dataclass
class ProtocolConfig:
    """Protocol parameters, fixed at genesis."""
    fee_basis_points: int = 25                # divided by 1000: 25 = 2.5%
    min_collateral_ratio_percent: int = 150
    yield_rate_basis_points: int = 50         # divided by 52560 blocks per year
    deployer: str = ""                        # hex address of the deploying identity

    def __post_init__(self):
        for name in ('fee_basis_points', 'min_collateral_ratio_percent', 'yield_rate_basis_points'):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 0:
                raise ValueError(f"{name} must be a non-negative integer, got {value!r}")

    @property
    def deployer_address(self) -> bytes:
        return bytes.fromhex(self.deployer)


@dataclass
class DatabaseConfig:
    """LevelDB settings for the state store."""
    path: str = "./vault_data"
    write_buffer_size: int = 64 * 1024 * 1024
    max_open_files: int = 1000
    compression: str = "snappy"


@dataclass
class GenesisConfig:
    """Initial state applied to a fresh store."""
    pre_funded_accounts: list = field(default_factory=list)  # [{'address': hex, 'balance': int}]
    initial_height: int = 0


@dataclass
class Config:
    """Everything needed to open or initialize a vault."""
    protocol: ProtocolConfig
    database: DatabaseConfig
    genesis: GenesisConfig

    @classmethod
    def default(cls) -> 'Config':
        """Default parameters; the deployer still has to be set before genesis."""
        return cls(
            protocol=ProtocolConfig(),
            database=DatabaseConfig(),
            genesis=GenesisConfig()
        )

    @classmethod
    def from_file(cls, path: str) -> 'Config':
        """Load a JSON config written by `to_file` or by hand."""
        with open(path, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> 'Config':
        return cls(
            protocol=ProtocolConfig(**data.get('protocol', {})),
            database=DatabaseConfig(**data.get('database', {})),
            genesis=GenesisConfig(**data.get('genesis', {}))
        )

    def to_file(self, path: str):
        """Write the config as JSON, creating parent directories."""
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    def to_dict(self) -> dict:
        return {
            'protocol': asdict(self.protocol),
            'database': asdict(self.database),
            'genesis': asdict(self.genesis)
        }
