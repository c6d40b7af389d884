# cipherledger/core/encoding.py
import base64
import binascii


def b64_encode(data: bytes) -> str:
    """Encode bytes to standard (padded) base64 text."""
    return base64.b64encode(data).decode("ascii")


def b64_decode(s: str) -> bytes:
    """Decode standard base64 text. Raises ValueError on malformed input."""
    try:
        return base64.b64decode(s.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"Invalid base64 data: {e}") from e
