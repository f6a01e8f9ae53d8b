"""
Staking engine: lock an asset, accrue yield per block, pay it to the holder.

Accrual is lazy. Nothing is updated while an asset sits staked; the reward
is recomputed from `stake_start_height` whenever it is read or claimed.
"""
import logging
from typing import Optional

from nft_vault.errors import ErrorCode, InvariantViolation, LedgerError, PrimitiveError
from nft_vault.primitives import CUSTODY_ADDRESS
from nft_vault.records import RewardAccount
from nft_vault.registry import TokenRegistry, is_valid_asset_id
from nft_vault.state import reward_key

logger = logging.getLogger(__name__)

BLOCKS_PER_YEAR = 52560  # ~10 minute blocks


class StakingEngine:
    def __init__(self, registry: TokenRegistry, height: int):
        self.registry = registry
        self.state = registry.state
        self.protocol = registry.protocol
        self.bank = registry.bank
        self.owners = registry.owners
        self.height = height

    def get_reward_account(self, asset_id: int) -> Optional[RewardAccount]:
        if not is_valid_asset_id(asset_id):
            return None
        data = self.state.get_record(reward_key(asset_id))
        if data is None:
            return None
        return RewardAccount(data)

    def _reset_reward_account(self, asset_id: int):
        account = RewardAccount({'accumulated_yield': 0, 'last_claim_height': self.height})
        self.state.set_record(reward_key(asset_id), account.to_dict())

    @property
    def yield_per_block(self) -> int:
        # Integer division on purpose: the default rate of 50 yields 0 per block.
        return self.protocol.yield_rate_basis_points // BLOCKS_PER_YEAR

    def calculate_reward(self, asset_id: int) -> int:
        account = self.get_reward_account(asset_id)
        if account is None:
            raise LedgerError(ErrorCode.NOT_STAKED, f"Asset {asset_id} has never been staked")
        asset = self.registry.require_asset(asset_id)

        blocks_staked = self.height - asset.stake_start_height
        return account.accumulated_yield + blocks_staked * self.yield_per_block

    def pending_reward(self, asset_id: int) -> Optional[int]:
        """Claimable yield right now, or None for an unknown or never-staked asset."""
        try:
            return self.calculate_reward(asset_id)
        except LedgerError:
            return None

    def stake(self, caller: bytes, asset_id: int) -> bool:
        asset = self.registry.require_asset(asset_id)
        self.registry.require_authorized(asset_id, caller)
        if asset.is_staked:
            raise LedgerError(ErrorCode.ALREADY_STAKED, f"Asset {asset_id} is already staked")

        asset.is_staked = True
        asset.stake_start_height = self.height
        self.registry.put_asset(asset_id, asset)
        self._reset_reward_account(asset_id)
        logger.info(f"Asset {asset_id} staked at height {self.height}")
        return True

    def claim(self, asset_id: int) -> int:
        asset = self.registry.require_asset(asset_id)
        if not asset.is_staked:
            raise LedgerError(ErrorCode.NOT_STAKED, f"Asset {asset_id} is not staked")

        reward = self.calculate_reward(asset_id)
        self._reset_reward_account(asset_id)

        owner = self.owners.owner_of(asset_id)
        if owner is None:
            logger.error(f"Staked asset {asset_id} has no recorded owner")
            raise InvariantViolation(f"Staked asset {asset_id} has no recorded owner")

        try:
            self.bank.transfer(CUSTODY_ADDRESS, owner, reward)
        except PrimitiveError as e:
            raise LedgerError(ErrorCode.TRANSFER_FAILED, str(e)) from e

        logger.info(f"Paid {reward} yield for asset {asset_id} to {owner.hex()[:8]}")
        return reward

    def unstake(self, caller: bytes, asset_id: int) -> bool:
        asset = self.registry.require_asset(asset_id)
        self.registry.require_authorized(asset_id, caller)
        if not asset.is_staked:
            raise LedgerError(ErrorCode.NOT_STAKED, f"Asset {asset_id} is not staked")

        self.claim(asset_id)

        asset.is_staked = False
        asset.stake_start_height = 0
        self.registry.put_asset(asset_id, asset)
        logger.info(f"Asset {asset_id} unstaked at height {self.height}")
        return True
