"""Hashing helpers for content addressing."""

from __future__ import annotations

from blake3 import blake3


def blake3_digest(data: bytes) -> bytes:
    """Return the byte digest of the supplied data."""
    return blake3(data).digest()


def blake3_hexdigest(data: bytes) -> str:
    """Return the hexadecimal digest of the supplied data."""
    return blake3(data).hexdigest()


def content_id(author_id: str, title: str, body: str, created_at_ms: int) -> str:
    """Return the opaque content hash used as an item identifier."""
    payload = "\x1f".join((author_id, title, body, str(created_at_ms))).encode("utf-8")
    return blake3_hexdigest(payload)
