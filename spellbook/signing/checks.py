"""Integrity helpers: SHA-256 for archives and generated bundles."""

from __future__ import annotations

import hashlib
from collections.abc import Mapping
from pathlib import Path

_CHUNK = 1024 * 1024


def sha256(path: Path) -> str:
    """Return the hex SHA-256 of *path*."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK), b""):
            h.update(chunk)
    return h.hexdigest()


def bundle_digest(bundle: Mapping[str, str]) -> str:
    """Digest of a generated bundle, independent of key order.

    Each entry contributes its name and content, both length-prefixed, so
    moving bytes between files changes the digest.
    """
    h = hashlib.sha256()
    for name in sorted(bundle):
        for part in (name.encode("utf-8"), bundle[name].encode("utf-8")):
            h.update(len(part).to_bytes(8, "big"))
            h.update(part)
    return h.hexdigest()


def _normalize_expected(expected: str) -> str:
    exp = expected.strip().lower()
    return exp.removeprefix("sha256:")


def verify_digest(got: str, expected: str) -> None:
    """Raise ValueError unless *got* matches *expected* (hex or ``sha256:<hex>``)."""
    exp = _normalize_expected(expected)
    if got.lower() != exp:
        raise ValueError(f"SHA-256 mismatch: got {got}, expected {exp}")


def verify_sha256(path: Path, expected: str) -> None:
    verify_digest(sha256(path), expected)


def verify_bundle(bundle: Mapping[str, str], expected: str) -> None:
    verify_digest(bundle_digest(bundle), expected)
