# cipherledger/crypto/engine.py
"""
RSA encrypt / decrypt / sign / verify.

Encryption is RSA-OAEP with MGF1(SHA-256) and SHA-256. Signatures are
PKCS#1 v1.5 over SHA-256 and are meant to be computed over the *ciphertext*:
a valid signature says who produced this encrypted artifact, independent of
who can decrypt it.
"""

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from cipherledger.core.encoding import b64_decode
from cipherledger.core.errors import (
    DecryptionError,
    MessageTooLargeError,
    SignatureFormatError,
)
from cipherledger.crypto.keys import (
    PrivateKeyLike,
    PublicKeyLike,
    load_private_key,
    load_public_key,
)

OAEP_HASH_LEN = hashes.SHA256.digest_size

# 2048-bit modulus: 256 - 2*32 - 2
MAX_PLAINTEXT_LEN = 190


def _oaep() -> padding.OAEP:
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None,
    )


def max_plaintext_len(public_key: PublicKeyLike) -> int:
    """Largest plaintext RSA-OAEP/SHA-256 can carry under this key."""
    key = load_public_key(public_key)
    return key.key_size // 8 - 2 * OAEP_HASH_LEN - 2


def encrypt(plaintext: bytes, recipient_public_key: PublicKeyLike) -> bytes:
    key = load_public_key(recipient_public_key)
    limit = key.key_size // 8 - 2 * OAEP_HASH_LEN - 2
    if len(plaintext) > limit:
        raise MessageTooLargeError(len(plaintext), limit)
    return key.encrypt(plaintext, _oaep())


def decrypt(ciphertext: bytes, recipient_private_key: PrivateKeyLike) -> bytes:
    key = load_private_key(recipient_private_key)
    try:
        return key.decrypt(ciphertext, _oaep())
    except ValueError as e:
        raise DecryptionError("Decryption failed: ciphertext does not match this key or is corrupt") from e


def sign(data: bytes, signer_private_key: PrivateKeyLike) -> bytes:
    key = load_private_key(signer_private_key)
    return key.sign(data, padding.PKCS1v15(), hashes.SHA256())


def verify(data: bytes, signature: bytes, signer_public_key: PublicKeyLike) -> bool:
    """
    True iff `signature` is a valid signature over `data` by the key's owner.
    Mismatch returns False; only a malformed signature raises SignatureFormatError.
    """
    if not isinstance(signature, (bytes, bytearray)):
        raise SignatureFormatError(f"Signature must be bytes, got {type(signature).__name__}")

    key = load_public_key(signer_public_key)
    expected_len = (key.key_size + 7) // 8
    if len(signature) != expected_len:
        raise SignatureFormatError(
            f"Signature length {len(signature)} does not match key size ({expected_len} bytes)"
        )

    try:
        key.verify(bytes(signature), data, padding.PKCS1v15(), hashes.SHA256())
    except InvalidSignature:
        return False
    return True


def verify_b64(data: bytes, signature_b64: str, signer_public_key: PublicKeyLike) -> bool:
    """Same as verify(), for a base64 signature as stored in records."""
    try:
        signature = b64_decode(signature_b64)
    except (ValueError, AttributeError) as e:
        raise SignatureFormatError(f"Signature is not valid base64: {e}") from e
    return verify(data, signature, signer_public_key)
