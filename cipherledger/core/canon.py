# cipherledger/core/canon.py
"""
RFC 8785 canonical form for block headers and stored records.

Block hashes are taken over these bytes, so a payload rebuilt from disk with
its keys in a different order still hashes to the value it was mined with.
"""
from typing import Any

import jcs


def canonical_json(obj: Any) -> bytes:
    return jcs.canonicalize(obj)


def canonical_text(obj: Any) -> str:
    """Canonical form as text, for columns that store a record's JSON."""
    return canonical_json(obj).decode("utf-8")
