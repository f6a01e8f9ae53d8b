"""
Value-transfer and ownership primitives.

Both operate on the caller's pending state, so their effects commit or roll
back together with the operation that invoked them. Failures are reported
by raising `PrimitiveError`.
"""
import logging
from typing import Optional

from nft_vault.errors import PrimitiveError
from nft_vault.records import MAX_AMOUNT, is_amount
from nft_vault.state import StateView, account_key, owner_key

logger = logging.getLogger(__name__)

# Reserved addresses
CUSTODY_ADDRESS = b'\x00' * 19 + b'\x01'


class Bank:
    """Native-currency balances keyed by identity."""

    def __init__(self, state: StateView):
        self.state = state

    def _get_account(self, address: bytes) -> dict:
        account = self.state.get_record(account_key(address))
        if account is None:
            return {'balance': 0}
        return account

    def _set_account(self, address: bytes, account: dict):
        self.state.set_record(account_key(address), account)

    def balance_of(self, address: bytes) -> int:
        return self._get_account(address)['balance']

    def credit(self, address: bytes, amount: int):
        """Create currency out of thin air. Genesis and host funding only."""
        if not is_amount(amount):
            raise PrimitiveError(f"Cannot credit {amount!r}")
        account = self._get_account(address)
        self._check_headroom(address, account, amount)
        account['balance'] += amount
        self._set_account(address, account)

    def _check_headroom(self, address: bytes, account: dict, amount: int):
        if account['balance'] + amount >= MAX_AMOUNT:
            raise PrimitiveError(f"Balance of {address.hex()[:8]} would exceed 64 bits")

    def transfer(self, sender: bytes, recipient: bytes, amount: int):
        """
        Move `amount` from `sender` to `recipient`.

        Zero amounts and self-transfers leave balances untouched.
        """
        if not is_amount(amount):
            raise PrimitiveError(f"Cannot transfer {amount!r}")
        if amount == 0 or sender == recipient:
            return

        sender_account = self._get_account(sender)
        if sender_account['balance'] < amount:
            raise PrimitiveError(
                f"Insufficient balance: {sender.hex()[:8]} has "
                f"{sender_account['balance']}, needs {amount}"
            )
        sender_account['balance'] -= amount
        self._set_account(sender, sender_account)

        recipient_account = self._get_account(recipient)
        self._check_headroom(recipient, recipient_account, amount)
        recipient_account['balance'] += amount
        self._set_account(recipient, recipient_account)
        logger.debug(f"Moved {amount} from {sender.hex()[:8]} to {recipient.hex()[:8]}")


class OwnershipLedger:
    """Which identity currently holds each asset id."""

    def __init__(self, state: StateView):
        self.state = state

    def owner_of(self, asset_id: int) -> Optional[bytes]:
        return self.state.get(owner_key(asset_id))

    def mint(self, asset_id: int, owner: bytes):
        if self.owner_of(asset_id) is not None:
            raise PrimitiveError(f"Asset {asset_id} already has an owner")
        self.state.set(owner_key(asset_id), owner)

    def transfer(self, asset_id: int, sender: bytes, recipient: bytes):
        current = self.owner_of(asset_id)
        if current is None:
            raise PrimitiveError(f"Asset {asset_id} has no owner")
        if current != sender:
            raise PrimitiveError(f"{sender.hex()[:8]} does not hold asset {asset_id}")
        if sender == recipient:
            raise PrimitiveError("Sender and recipient are the same")
        self.state.set(owner_key(asset_id), recipient)
