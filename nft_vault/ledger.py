"""
The vault ledger: one state store, one height counter, three components.

Every public operation runs in its own pending state. Validation failures
roll the whole operation back and come back as a `Result` carrying an
`ErrorCode`; nothing is retried.
"""
import logging
import time
from typing import Optional

from nft_vault.config import Config, ProtocolConfig
from nft_vault.core import Call, MINT, TRANSFER, LIST, PURCHASE, STAKE, UNSTAKE
from nft_vault.errors import ErrorCode, LedgerError, PrimitiveError
from nft_vault.marketplace import Marketplace
from nft_vault.memdb import MemoryDB
from nft_vault.monitoring import Monitor
from nft_vault.primitives import CUSTODY_ADDRESS, Bank, OwnershipLedger
from nft_vault.records import Asset, Listing, RewardAccount, is_amount
from nft_vault.registry import TokenRegistry, is_valid_asset_id
from nft_vault.staking import StakingEngine
from nft_vault.state import HEIGHT_KEY, PROTOCOL_KEY, StateStore, StateView

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class Result:
    """Outcome of one operation: a value, or an error code."""

    def __init__(self, value=None, error: Optional[ErrorCode] = None, message: str = ""):
        self.value = value
        self.error = error
        self.message = message

    @classmethod
    def success(cls, value) -> 'Result':
        return cls(value=value)

    @classmethod
    def failure(cls, error: ErrorCode, message: str = "") -> 'Result':
        return cls(error=error, message=message or error.value)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        if self.ok:
            return {'ok': True, 'value': self.value}
        return {'ok': False, 'error': self.error.value, 'message': self.message}

    def __repr__(self) -> str:
        if self.ok:
            return f"Result(ok, value={self.value!r})"
        return f"Result(error={self.error.value}, message={self.message!r})"


class HeightCounter:
    """Monotonic block height persisted in the state store."""

    def __init__(self, state: StateView):
        self.state = state

    @property
    def current(self) -> int:
        return self.state.get_int(HEIGHT_KEY)

    def advance(self, blocks: int = 1) -> int:
        if not is_amount(blocks):
            raise ValueError("Height can only move forward")
        new_height = self.current + blocks
        if not is_amount(new_height):
            raise ValueError(f"Height {new_height} exceeds 64 bits")
        self.state.set_int(HEIGHT_KEY, new_height)
        return new_height


class _Components:
    def __init__(self, state, protocol: ProtocolConfig, bank_factory, ownership_factory):
        self.state = state
        self.bank = bank_factory(state)
        self.owners = ownership_factory(state)
        self.registry = TokenRegistry(state, protocol, self.bank, self.owners)
        self.marketplace = Marketplace(self.registry)
        self.staking = StakingEngine(self.registry, HeightCounter(state).current)


_HANDLERS = {
    MINT: lambda c, caller, uri, collateral_amount: c.registry.mint(caller, uri, collateral_amount),
    TRANSFER: lambda c, caller, asset_id, recipient: c.registry.transfer(caller, asset_id, recipient),
    LIST: lambda c, caller, asset_id, price: c.marketplace.list(caller, asset_id, price),
    PURCHASE: lambda c, caller, asset_id: c.marketplace.purchase(caller, asset_id),
    STAKE: lambda c, caller, asset_id: c.staking.stake(caller, asset_id),
    UNSTAKE: lambda c, caller, asset_id: c.staking.unstake(caller, asset_id),
}


class Ledger:
    def __init__(self, db=None, config: Config = None,
                 bank_factory=Bank, ownership_factory=OwnershipLedger):
        """
        Open a ledger over `db` (in-memory if omitted).

        A fresh store is initialized from `config`: protocol parameters,
        starting height and pre-funded accounts. A store that already holds
        protocol parameters keeps them; they are set once. Without a
        `config`, an existing store is opened on its genesis parameters as is.
        """
        self.db = db if db is not None else MemoryDB()
        self.config = config or Config.default()
        self.store = StateStore(self.db)
        self.bank_factory = bank_factory
        self.ownership_factory = ownership_factory

        if self.store.get(PROTOCOL_KEY) is None:
            self._apply_genesis()
        self.protocol = ProtocolConfig(**self.store.get_record(PROTOCOL_KEY))
        if config is not None and self.protocol != config.protocol:
            logger.warning("Configured protocol parameters differ from genesis; using genesis values")

        self.monitor = Monitor(self)
        self.monitor.update()

    def _apply_genesis(self):
        protocol = self.config.protocol
        if not protocol.deployer:
            raise ValueError("protocol.deployer must be set before genesis")

        pending = self.store.begin()
        pending.set_record(PROTOCOL_KEY, {
            'fee_basis_points': protocol.fee_basis_points,
            'min_collateral_ratio_percent': protocol.min_collateral_ratio_percent,
            'yield_rate_basis_points': protocol.yield_rate_basis_points,
            'deployer': protocol.deployer,
        })
        pending.set_int(HEIGHT_KEY, self.config.genesis.initial_height)

        bank = self.bank_factory(pending)
        for account in self.config.genesis.pre_funded_accounts:
            try:
                bank.credit(bytes.fromhex(account['address']), int(account['balance']))
            except PrimitiveError as e:
                pending.discard()
                raise ValueError(f"Invalid pre-funded account {account['address']}: {e}") from e
        pending.commit()
        logger.info(
            f"Genesis applied: deployer={protocol.deployer[:8]}, "
            f"{len(self.config.genesis.pre_funded_accounts)} funded accounts"
        )

    # ==========================================================================
    # HOST CONTROLS
    # ==========================================================================

    @property
    def deployer(self) -> bytes:
        return self.protocol.deployer_address

    @property
    def height(self) -> int:
        return HeightCounter(self.store).current

    def advance(self, blocks: int = 1) -> int:
        """Confirm `blocks` units of work. Returns the new height."""
        pending = self.store.begin()
        new_height = HeightCounter(pending).advance(blocks)
        pending.commit()
        self.monitor.update()
        logger.debug(f"Height advanced to {new_height}")
        return new_height

    def fund(self, address: bytes, amount: int):
        """Credit native currency to an account outside of any operation."""
        pending = self.store.begin()
        try:
            self.bank_factory(pending).credit(address, amount)
        except PrimitiveError as e:
            pending.discard()
            raise ValueError(str(e)) from e
        pending.commit()
        logger.info(f"Funded {address.hex()[:8]} with {amount}")

    # ==========================================================================
    # OPERATIONS
    # ==========================================================================

    def execute(self, caller: bytes, op: str, **args) -> Result:
        """Run one operation atomically on behalf of `caller`."""
        handler = _HANDLERS.get(op)
        if handler is None:
            return Result.failure(ErrorCode.INVALID_PARAMETERS, f"Unknown operation: {op}")

        start = time.time()
        pending = self.store.begin()
        try:
            components = _Components(pending, self.protocol, self.bank_factory, self.ownership_factory)
            value = handler(components, caller, **args)
            pending.commit()
        except LedgerError as e:
            pending.discard()
            self.monitor.record_op(op, "failed", time.time() - start)
            logger.warning(f"{op} by {caller.hex()[:8]} rejected: {e}")
            return Result.failure(e.code, e.message)
        except Exception:
            pending.discard()
            self.monitor.record_op(op, "error", time.time() - start)
            raise

        self.monitor.record_op(op, "success", time.time() - start)
        self.monitor.update()
        return Result.success(value)

    def submit(self, call: Call) -> Result:
        """Verify a signed call and execute it as its sender."""
        is_valid, error = call.validate_basic()
        if not is_valid:
            logger.warning(f"{call.op} call rejected: {error}")
            return Result.failure(ErrorCode.INVALID_PARAMETERS, error)
        return self.execute(call.sender_address, call.op, **call.args)

    def mint(self, caller: bytes, uri: str, collateral_amount: int) -> Result:
        return self.execute(caller, MINT, uri=uri, collateral_amount=collateral_amount)

    def transfer(self, caller: bytes, asset_id: int, recipient: bytes) -> Result:
        return self.execute(caller, TRANSFER, asset_id=asset_id, recipient=recipient)

    def list(self, caller: bytes, asset_id: int, price: int) -> Result:
        return self.execute(caller, LIST, asset_id=asset_id, price=price)

    def purchase(self, caller: bytes, asset_id: int) -> Result:
        return self.execute(caller, PURCHASE, asset_id=asset_id)

    def stake(self, caller: bytes, asset_id: int) -> Result:
        return self.execute(caller, STAKE, asset_id=asset_id)

    def unstake(self, caller: bytes, asset_id: int) -> Result:
        return self.execute(caller, UNSTAKE, asset_id=asset_id)

    # ==========================================================================
    # READ-ONLY QUERIES
    # ==========================================================================

    def _view(self) -> _Components:
        return _Components(self.store, self.protocol, self.bank_factory, self.ownership_factory)

    def get_metadata(self, asset_id: int) -> Optional[Asset]:
        return self._view().registry.get_metadata(asset_id)

    def get_listing(self, asset_id: int) -> Optional[Listing]:
        return self._view().marketplace.get_listing(asset_id)

    def get_reward_account(self, asset_id: int) -> Optional[RewardAccount]:
        return self._view().staking.get_reward_account(asset_id)

    def pending_reward(self, asset_id: int) -> Optional[int]:
        return self._view().staking.pending_reward(asset_id)

    def quote(self, asset_id: int) -> Optional[tuple[int, int]]:
        return self._view().marketplace.quote(asset_id)

    def last_asset_id(self) -> int:
        return self._view().registry.last_asset_id()

    def owner_of(self, asset_id: int) -> Optional[bytes]:
        if not is_valid_asset_id(asset_id):
            return None
        return self._view().owners.owner_of(asset_id)

    def balance_of(self, address: bytes) -> int:
        return self._view().bank.balance_of(address)

    def custody_balance(self) -> int:
        return self.balance_of(CUSTODY_ADDRESS)

    def close(self):
        self.db.close()
