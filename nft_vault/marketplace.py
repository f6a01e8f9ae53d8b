"""
Fixed-price marketplace with protocol fees.
"""
import logging
from typing import Optional

from nft_vault.errors import ErrorCode, LedgerError, PrimitiveError
from nft_vault.records import Listing, is_amount
from nft_vault.registry import TokenRegistry, is_valid_asset_id
from nft_vault.state import listing_key

logger = logging.getLogger(__name__)

# fee_basis_points is scaled by 1000, not 10000: 25 means 2.5%
FEE_DENOMINATOR = 1000


class Marketplace:
    def __init__(self, registry: TokenRegistry):
        self.registry = registry
        self.state = registry.state
        self.protocol = registry.protocol
        self.bank = registry.bank
        self.owners = registry.owners

    def get_listing(self, asset_id: int) -> Optional[Listing]:
        if not is_valid_asset_id(asset_id):
            return None
        data = self.state.get_record(listing_key(asset_id))
        if data is None:
            return None
        return Listing(data)

    def _put_listing(self, asset_id: int, listing: Listing):
        self.state.set_record(listing_key(asset_id), listing.to_dict())

    def fee_for(self, price: int) -> int:
        return price * self.protocol.fee_basis_points // FEE_DENOMINATOR

    def quote(self, asset_id: int) -> Optional[tuple[int, int]]:
        """(price, fee) a buyer would pay for an active listing, else None."""
        listing = self.get_listing(asset_id)
        if listing is None or not listing.is_active:
            return None
        return listing.price, self.fee_for(listing.price)

    def list(self, caller: bytes, asset_id: int, price: int) -> bool:
        self.registry.require_authorized(asset_id, caller)
        if not is_amount(price) or price == 0:
            raise LedgerError(ErrorCode.INVALID_PARAMETERS, "Price must be a positive 64-bit integer")
        # Existence, not activity: a sold listing still blocks relisting.
        if self.state.get(listing_key(asset_id)) is not None:
            raise LedgerError(ErrorCode.LISTING_EXISTS, f"Asset {asset_id} already has a listing")

        self._put_listing(asset_id, Listing({'price': price, 'seller': caller, 'is_active': True}))
        logger.info(f"Asset {asset_id} listed at {price} by {caller.hex()[:8]}")
        return True

    def purchase(self, caller: bytes, asset_id: int) -> bool:
        """
        Buy an actively listed asset.

        Pays the price to the seller, then the fee to the deployer, then moves
        ownership. A failure at any step aborts the whole operation; the
        ledger discards the already-applied payments with the rest of the
        pending state.
        """
        listing = self.get_listing(asset_id)
        if listing is None or not listing.is_active:
            raise LedgerError(ErrorCode.LISTING_NOT_FOUND, f"No active listing for asset {asset_id}")

        price = listing.price
        fee = self.fee_for(price)
        if self.bank.balance_of(caller) < price:
            raise LedgerError(ErrorCode.INSUFFICIENT_FUNDS, f"Purchase requires {price}")

        try:
            self.bank.transfer(caller, listing.seller, price)
            self.bank.transfer(caller, self.protocol.deployer_address, fee)
            self.owners.transfer(asset_id, listing.seller, caller)
        except PrimitiveError as e:
            raise LedgerError(ErrorCode.TRANSFER_FAILED, str(e)) from e

        listing.price = 0
        listing.is_active = False
        self._put_listing(asset_id, listing)
        logger.info(f"Asset {asset_id} sold to {caller.hex()[:8]} for {price} (fee {fee})")
        return True
