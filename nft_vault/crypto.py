"""
Identities for the vault: hashing, P-256 key pairs, addresses and signatures.

An identity is the first 20 bytes of sha256 over the DER-encoded public key.
Keys travel as PEM strings.
"""
import hashlib
from typing import Optional

from Crypto.Hash import keccak
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.exceptions import InvalidSignature

ADDRESS_LENGTH = 20


def generate_hash(data: bytes) -> bytes:
    """Keccak-256 digest, used for call ids."""
    return keccak.new(digest_bits=256, data=data).digest()


def generate_key_pair() -> tuple[ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey]:
    private_key = ec.generate_private_key(ec.SECP256R1())
    return private_key, private_key.public_key()


def serialize_public_key(public_key: ec.EllipticCurvePublicKey) -> str:
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode('utf-8')


def deserialize_public_key(pem_data: str) -> ec.EllipticCurvePublicKey:
    return serialization.load_pem_public_key(pem_data.encode('utf-8'))


def serialize_private_key(private_key: ec.EllipticCurvePrivateKey,
                          password: Optional[bytes] = None) -> str:
    """PKCS8 PEM, encrypted when a password is given."""
    if password:
        encryption = serialization.BestAvailableEncryption(password)
    else:
        encryption = serialization.NoEncryption()
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encryption,
    ).decode('utf-8')


def load_private_key(pem_data: str, password: Optional[bytes] = None) -> ec.EllipticCurvePrivateKey:
    return serialization.load_pem_private_key(pem_data.encode('utf-8'), password=password)


def public_key_to_address(public_key_pem: str) -> bytes:
    """Derives the 20-byte identity for a public key PEM string."""
    der_bytes = deserialize_public_key(public_key_pem).public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    )
    return hashlib.sha256(der_bytes).digest()[:ADDRESS_LENGTH]


def sign(private_key: ec.EllipticCurvePrivateKey, data: bytes) -> bytes:
    """ECDSA over SHA-256."""
    return private_key.sign(data, ec.ECDSA(hashes.SHA256()))


def verify_signature(public_key_pem: str, signature: bytes, data: bytes) -> bool:
    # Malformed keys or signatures count as a failed verification
    try:
        deserialize_public_key(public_key_pem).verify(signature, data, ec.ECDSA(hashes.SHA256()))
        return True
    except (InvalidSignature, ValueError):
        return False
