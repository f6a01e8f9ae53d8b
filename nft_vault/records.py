"""
Record types stored in the vault state: assets, listings and reward accounts.
"""

MAX_URI_BYTES = 256

# Amounts, prices and heights are msgpack unsigned 64-bit integers
MAX_AMOUNT = 2 ** 64


def is_amount(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value < MAX_AMOUNT


class Asset:
    """
    A minted asset.

    `collateral_amount` is the amount declared at mint time. Only
    `min_collateral_ratio_percent * collateral_amount // 100` is actually
    custodied.
    """

    def __init__(self, data: dict):
        self.creator = bytes(data['creator'])
        self.uri = str(data['uri'])
        self.collateral_amount = int(data['collateral_amount'])
        self.is_staked = bool(data.get('is_staked', False))
        self.stake_start_height = int(data.get('stake_start_height', 0))
        self._validate()

    def to_dict(self) -> dict:
        return {
            'creator': self.creator,
            'uri': self.uri,
            'collateral_amount': self.collateral_amount,
            'is_staked': self.is_staked,
            'stake_start_height': self.stake_start_height,
        }

    def _validate(self):
        if not 0 < len(self.uri.encode('utf-8')) <= MAX_URI_BYTES:
            raise ValueError(f"uri must be 1..{MAX_URI_BYTES} bytes")
        if self.collateral_amount < 0:
            raise ValueError("Collateral cannot be negative")
        if not self.is_staked and self.stake_start_height != 0:
            raise ValueError("Unstaked asset must have stake_start_height 0")

    def __eq__(self, other) -> bool:
        return isinstance(other, Asset) and self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return (
            f"Asset("
            f"creator={self.creator.hex()}, "
            f"uri={self.uri!r}, "
            f"collateral={self.collateral_amount}, "
            f"staked={self.is_staked}@{self.stake_start_height})"
        )


class Listing:
    """A fixed-price offer to sell an asset. Deactivated on sale, never removed."""

    def __init__(self, data: dict):
        self.price = int(data['price'])
        self.seller = bytes(data['seller'])
        self.is_active = bool(data['is_active'])

    def to_dict(self) -> dict:
        return {
            'price': self.price,
            'seller': self.seller,
            'is_active': self.is_active,
        }

    def __eq__(self, other) -> bool:
        return isinstance(other, Listing) and self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"Listing(price={self.price}, seller={self.seller.hex()}, active={self.is_active})"


class RewardAccount:
    """Yield bookkeeping for an asset that has been staked at least once."""

    def __init__(self, data: dict):
        self.accumulated_yield = int(data['accumulated_yield'])
        self.last_claim_height = int(data['last_claim_height'])

    def to_dict(self) -> dict:
        return {
            'accumulated_yield': self.accumulated_yield,
            'last_claim_height': self.last_claim_height,
        }

    def __eq__(self, other) -> bool:
        return isinstance(other, RewardAccount) and self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return (
            f"RewardAccount(accumulated={self.accumulated_yield}, "
            f"last_claim={self.last_claim_height})"
        )
