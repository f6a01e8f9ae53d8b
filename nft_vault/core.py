"""
Signed operation envelope submitted to the ledger.
"""
import time
import msgpack
from typing import Optional
from .crypto import (
    generate_hash,
    public_key_to_address,
    sign,
    verify_signature,
    ADDRESS_LENGTH,
)
from .records import MAX_URI_BYTES, is_amount

MINT     = "MINT"
TRANSFER = "TRANSFER"
LIST     = "LIST"
PURCHASE = "PURCHASE"
STAKE    = "STAKE"
UNSTAKE  = "UNSTAKE"

OPERATIONS = (MINT, TRANSFER, LIST, PURCHASE, STAKE, UNSTAKE)

OPERATION_ARGS = {
    MINT: {'uri', 'collateral_amount'},
    TRANSFER: {'asset_id', 'recipient'},
    LIST: {'asset_id', 'price'},
    PURCHASE: {'asset_id'},
    STAKE: {'asset_id'},
    UNSTAKE: {'asset_id'},
}


class Call:
    def __init__(self,
                 sender_public_key: str,
                 op: str,
                 args: dict,
                 signature: Optional[bytes] = None,
                 timestamp: Optional[float] = None):
        self.sender_public_key = sender_public_key
        self.op = op
        self.args = args
        self.timestamp = timestamp or time.time()
        self.signature = signature

    @classmethod
    def from_dict(cls, data: dict):
        """Creates a Call from a dictionary (signature as hex)."""
        return cls(
            sender_public_key=data["sender_public_key"],
            op=data["op"],
            args=data["args"],
            signature=bytes.fromhex(data["signature"]) if data.get("signature") else None,
            timestamp=data.get("timestamp"),
        )

    def to_dict(self, include_signature=True):
        data = {
            "sender_public_key": self.sender_public_key,
            "op": self.op,
            "args": self.args,
            "timestamp": self.timestamp,
        }
        if include_signature and self.signature:
            data["signature"] = self.signature.hex()
        return data

    def get_signing_data(self) -> bytes:
        """Returns the canonical byte representation for signing."""
        return msgpack.packb(self.to_dict(include_signature=False), use_bin_type=True)

    def sign(self, private_key):
        self.signature = sign(private_key, self.get_signing_data())

    def verify_signature(self) -> bool:
        if not self.signature:
            return False
        return verify_signature(self.sender_public_key, self.signature, self.get_signing_data())

    @property
    def id(self) -> bytes:
        """The unique hash identifier of the call."""
        return generate_hash(self.get_signing_data())

    @property
    def sender_address(self) -> bytes:
        return public_key_to_address(self.sender_public_key)

    def validate_basic(self) -> tuple[bool, str]:
        """
        Checks the shape of the arguments, then the signature.
        Returns (is_valid, error_message)
        """
        is_valid, error = self.validate_args()
        if not is_valid:
            return False, error
        if not self.verify_signature():
            return False, "Invalid signature"
        return True, ""

    def validate_args(self) -> tuple[bool, str]:
        # Runs before signing data is packed: msgpack cannot encode out-of-range integers
        if self.op not in OPERATIONS:
            return False, f"Unknown operation: {self.op}"

        if not isinstance(self.args, dict) or set(self.args) != OPERATION_ARGS[self.op]:
            return False, f"{self.op} takes exactly {sorted(OPERATION_ARGS[self.op])}"

        if self.op == MINT:
            uri = self.args.get('uri')
            if not isinstance(uri, str) or not 0 < len(uri.encode('utf-8')) <= MAX_URI_BYTES:
                return False, f"MINT requires a 1..{MAX_URI_BYTES} byte 'uri'"
            if not is_amount(self.args.get('collateral_amount')):
                return False, "MINT requires a non-negative 64-bit integer 'collateral_amount'"
            return True, ""

        asset_id = self.args.get('asset_id')
        if not is_amount(asset_id) or asset_id == 0:
            return False, f"{self.op} requires a positive 64-bit integer 'asset_id'"

        if self.op == TRANSFER:
            recipient = self.args.get('recipient')
            if not isinstance(recipient, bytes) or len(recipient) != ADDRESS_LENGTH:
                return False, f"TRANSFER requires a {ADDRESS_LENGTH}-byte 'recipient'"

        elif self.op == LIST:
            price = self.args.get('price')
            if not is_amount(price) or price == 0:
                return False, "LIST requires a positive 64-bit integer 'price'"

        return True, ""

    def __repr__(self) -> str:
        return f"Call(op={self.op}, sender={self.sender_address.hex()[:8]}, args={self.args})"
