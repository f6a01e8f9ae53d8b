"""
Token registry: asset records, issuance counter, collateral and authorization.
"""
import logging
from typing import Optional

from nft_vault.config import ProtocolConfig
from nft_vault.errors import ErrorCode, LedgerError, PrimitiveError
from nft_vault.primitives import CUSTODY_ADDRESS, Bank, OwnershipLedger
from nft_vault.records import Asset, MAX_URI_BYTES, is_amount
from nft_vault.state import LAST_ASSET_ID_KEY, StateView, asset_key

logger = logging.getLogger(__name__)


# ==============================================================================
# AUTHORIZATION
# ==============================================================================

def _is_deployer(asset_id: int, caller: bytes, protocol: ProtocolConfig,
                 owners: OwnershipLedger) -> bool:
    return caller == protocol.deployer_address


def _is_current_holder(asset_id: int, caller: bytes, protocol: ProtocolConfig,
                       owners: OwnershipLedger) -> bool:
    return owners.owner_of(asset_id) == caller


AUTHORIZATION_RULES = (_is_deployer, _is_current_holder)


def is_valid_asset_id(asset_id) -> bool:
    return isinstance(asset_id, int) and not isinstance(asset_id, bool) and 0 < asset_id < 2 ** 64


def is_authorized(state: StateView, asset_id: int, caller: bytes,
                  protocol: ProtocolConfig, owners: OwnershipLedger) -> bool:
    """
    True if `caller` may act on `asset_id`.

    Fails closed: an unknown asset authorizes nobody, deployer included.
    """
    if not is_valid_asset_id(asset_id) or state.get(asset_key(asset_id)) is None:
        return False
    return any(rule(asset_id, caller, protocol, owners) for rule in AUTHORIZATION_RULES)


# ==============================================================================
# REGISTRY
# ==============================================================================

class TokenRegistry:
    def __init__(self, state: StateView, protocol: ProtocolConfig,
                 bank: Bank, owners: OwnershipLedger):
        self.state = state
        self.protocol = protocol
        self.bank = bank
        self.owners = owners

    def get_metadata(self, asset_id: int) -> Optional[Asset]:
        if not is_valid_asset_id(asset_id):
            return None
        data = self.state.get_record(asset_key(asset_id))
        if data is None:
            return None
        return Asset(data)

    def require_asset(self, asset_id: int) -> Asset:
        asset = self.get_metadata(asset_id)
        if asset is None:
            raise LedgerError(ErrorCode.NOT_FOUND, f"Asset {asset_id} does not exist")
        return asset

    def put_asset(self, asset_id: int, asset: Asset):
        self.state.set_record(asset_key(asset_id), asset.to_dict())

    def is_authorized(self, asset_id: int, caller: bytes) -> bool:
        return is_authorized(self.state, asset_id, caller, self.protocol, self.owners)

    def require_authorized(self, asset_id: int, caller: bytes):
        if not self.is_authorized(asset_id, caller):
            raise LedgerError(
                ErrorCode.UNAUTHORIZED,
                f"{caller.hex()[:8]} is not authorized for asset {asset_id}"
            )

    def last_asset_id(self) -> int:
        return self.state.get_int(LAST_ASSET_ID_KEY)

    def min_collateral(self, collateral_amount: int) -> int:
        return self.protocol.min_collateral_ratio_percent * collateral_amount // 100

    def mint(self, caller: bytes, uri: str, collateral_amount: int) -> int:
        """Lock collateral and issue a new asset to `caller`. Returns the new id."""
        if not isinstance(uri, str) or not 0 < len(uri.encode('utf-8')) <= MAX_URI_BYTES:
            raise LedgerError(ErrorCode.INVALID_PARAMETERS, f"uri must be 1..{MAX_URI_BYTES} bytes")
        if not is_amount(collateral_amount):
            raise LedgerError(ErrorCode.INVALID_PARAMETERS, "collateral must be an unsigned 64-bit integer")

        required = self.min_collateral(collateral_amount)
        if self.bank.balance_of(caller) < required:
            raise LedgerError(
                ErrorCode.INSUFFICIENT_FUNDS,
                f"Minting requires {required} locked collateral"
            )

        asset_id = self.last_asset_id() + 1
        try:
            self.bank.transfer(caller, CUSTODY_ADDRESS, required)
            self.owners.mint(asset_id, caller)
        except PrimitiveError as e:
            raise LedgerError(ErrorCode.TRANSFER_FAILED, str(e)) from e

        self.put_asset(asset_id, Asset({
            'creator': caller,
            'uri': uri,
            'collateral_amount': collateral_amount,
            'is_staked': False,
            'stake_start_height': 0,
        }))
        self.state.set_int(LAST_ASSET_ID_KEY, asset_id)
        logger.info(f"Minted asset {asset_id} for {caller.hex()[:8]} (custodied {required})")
        return asset_id

    def transfer(self, caller: bytes, asset_id: int, recipient: bytes) -> bool:
        self.require_asset(asset_id)
        self.require_authorized(asset_id, caller)
        if not isinstance(recipient, bytes) or recipient == caller:
            raise LedgerError(ErrorCode.INVALID_PARAMETERS, "Recipient must differ from caller")

        try:
            self.owners.transfer(asset_id, caller, recipient)
        except PrimitiveError as e:
            raise LedgerError(ErrorCode.TRANSFER_FAILED, str(e)) from e

        logger.info(f"Asset {asset_id} transferred to {recipient.hex()[:8]}")
        return True
