# cipherledger/storage/keystore.py
import logging
from pathlib import Path

from cipherledger.core.errors import KeyStoreError
from cipherledger.core.types import KeyPair

logger = logging.getLogger(__name__)

PRIVATE_KEY = "privateKey"
PUBLIC_KEY = "publicKey"
KEY_KINDS = (PRIVATE_KEY, PUBLIC_KEY)


class FileKeyStore:
    """
    PEM files under one folder per participant:

        <root>/<username lowercased>/privateKey.pem
        <root>/<username lowercased>/publicKey.pem
    """

    def __init__(self, root: str | Path = "."):
        self.root = Path(root)

    def key_path(self, username: str, kind: str) -> Path:
        if kind not in KEY_KINDS:
            raise ValueError(f"Unknown key kind {kind!r}, expected one of {KEY_KINDS}")
        return self.root / username.lower() / f"{kind}.pem"

    def save_key(self, username: str, pem: str, kind: str) -> Path:
        path = self.key_path(username, kind)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(pem, encoding="utf-8")
        logger.info("Key saved to: %s", path)
        return path

    def save(self, username: str, key_pair: KeyPair) -> None:
        self.save_key(username, key_pair.private_key, PRIVATE_KEY)
        self.save_key(username, key_pair.public_key, PUBLIC_KEY)

    def _read(self, username: str, kind: str) -> str:
        path = self.key_path(username, kind)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise KeyStoreError(f"No {kind} for '{username.lower()}' at {path}")
        except OSError as e:
            raise KeyStoreError(f"Cannot read {path}: {e}") from e

    def load_public_key(self, username: str) -> str:
        return self._read(username, PUBLIC_KEY)

    def load(self, username: str) -> KeyPair:
        return KeyPair(
            public_key=self._read(username, PUBLIC_KEY),
            private_key=self._read(username, PRIVATE_KEY),
        )

    def has_keys(self, username: str) -> bool:
        return all(self.key_path(username, kind).exists() for kind in KEY_KINDS)
