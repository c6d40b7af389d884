# cipherledger/crypto/keys.py
import hashlib
import logging
from typing import Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from cipherledger.core.errors import KeyFormatError, KeyGenerationError
from cipherledger.core.types import KeyPair

logger = logging.getLogger(__name__)

KEY_SIZE = 2048
PUBLIC_EXPONENT = 65537

PublicKeyLike = Union[str, bytes, rsa.RSAPublicKey]
PrivateKeyLike = Union[str, bytes, rsa.RSAPrivateKey]


class KeyPairGenerator:
    """Produces a fresh RSA key pair on every call. No caching, no seed."""

    def __init__(self, key_size: int = KEY_SIZE):
        self.key_size = key_size

    def generate(self) -> KeyPair:
        try:
            private_key = rsa.generate_private_key(
                public_exponent=PUBLIC_EXPONENT,
                key_size=self.key_size,
            )
        except (ValueError, UnsupportedAlgorithm) as e:
            raise KeyGenerationError(f"RSA key generation failed: {e}") from e

        private_pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("ascii")
        public_pem = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("ascii")

        logger.debug("Generated %d-bit RSA key pair", self.key_size)
        return KeyPair(public_key=public_pem, private_key=private_pem)


def _as_bytes(pem: Union[str, bytes]) -> bytes:
    return pem.encode("ascii") if isinstance(pem, str) else pem


def load_public_key(key: PublicKeyLike) -> rsa.RSAPublicKey:
    """Accepts SPKI PEM text or an already-loaded RSA public key."""
    if isinstance(key, rsa.RSAPublicKey):
        return key
    try:
        loaded = serialization.load_pem_public_key(_as_bytes(key))
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise KeyFormatError(f"Invalid public key PEM: {e}") from e
    if not isinstance(loaded, rsa.RSAPublicKey):
        raise KeyFormatError("Public key is not an RSA key")
    return loaded


def load_private_key(key: PrivateKeyLike) -> rsa.RSAPrivateKey:
    """Accepts unencrypted PKCS8 PEM text or an already-loaded RSA private key."""
    if isinstance(key, rsa.RSAPrivateKey):
        return key
    try:
        loaded = serialization.load_pem_private_key(_as_bytes(key), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise KeyFormatError(f"Invalid private key PEM: {e}") from e
    if not isinstance(loaded, rsa.RSAPrivateKey):
        raise KeyFormatError("Private key is not an RSA key")
    return loaded


def fingerprint(public_key: PublicKeyLike) -> str:
    """Hex SHA-256 of the DER-encoded public key."""
    der = load_public_key(public_key).public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return hashlib.sha256(der).hexdigest()
