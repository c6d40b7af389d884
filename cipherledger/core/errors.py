# cipherledger/core/errors.py
"""
Error taxonomy.

Every failure is treated as a programmer or input error: nothing here is
retried. Cryptographic and size failures abort the current exchange and
propagate up to the caller.
"""


class LedgerError(Exception):
    """Base class for all cipherledger errors."""


class KeyGenerationError(LedgerError):
    """The crypto backend could not produce a key pair. Fatal for the run."""


class KeyFormatError(LedgerError):
    """PEM text could not be parsed into a key."""


class MessageTooLargeError(LedgerError):
    """Plaintext exceeds what RSA-OAEP can carry for the given key."""

    def __init__(self, length: int, limit: int):
        super().__init__(
            f"Message is too long for RSA encryption: {length} bytes (max {limit})"
        )
        self.length = length
        self.limit = limit


class DecryptionError(LedgerError):
    """Ciphertext was not produced for this key, or is corrupt."""


class SignatureFormatError(LedgerError):
    """Signature bytes are malformed (wrong type, length or encoding)."""


class ChainIntegrityError(LedgerError):
    """A chain rebuilt from storage does not validate."""


class MiningError(LedgerError):
    """Nonce search ran out of attempts before meeting the difficulty."""


class StorageError(LedgerError):
    """The persistence sink could not read or write its document."""


class KeyStoreError(LedgerError):
    """Key files are missing or unreadable."""
