"""Read candidate spell documents from a file, stdin or an http(s) URL."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import httpx

from spellbook.errors import CandidateSourceError

MAX_SOURCE_BYTES = 1024 * 1024


def _looks_like_url(s: str) -> bool:
    u = urlparse(s)
    return u.scheme in {"http", "https"} and bool(u.netloc)


def _fetch(url: str, client: httpx.Client | None, timeout: float) -> str:
    own = client is None
    client = client or httpx.Client(timeout=timeout, follow_redirects=True)
    try:
        with client.stream("GET", url) as r:
            r.raise_for_status()
            data = bytearray()
            for chunk in r.iter_bytes():
                data.extend(chunk)
                if len(data) > MAX_SOURCE_BYTES:
                    raise CandidateSourceError(f"{url}: document exceeds {MAX_SOURCE_BYTES} bytes")
            return data.decode(r.encoding or "utf-8")
    except httpx.HTTPError as exc:
        raise CandidateSourceError(f"{url}: {exc}") from exc
    finally:
        if own:
            client.close()


def read_source_text(source: str, client: httpx.Client | None = None, timeout: float = 10) -> str:
    if source == "-":
        return sys.stdin.read()
    if _looks_like_url(source):
        return _fetch(source, client, timeout)
    try:
        return Path(source).read_text(encoding="utf-8")
    except OSError as exc:
        raise CandidateSourceError(f"{source}: {exc.strerror or exc}") from exc


def read_candidate(source: str, client: httpx.Client | None = None, timeout: float = 10) -> Any:
    """Return the parsed JSON document at *source* (path, ``-`` or URL).

    The result is an unvalidated candidate; pass it to
    :func:`spellbook.generator.generate_bundle` or the validator.
    """
    text = read_source_text(source, client=client, timeout=timeout)
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise CandidateSourceError(
            f"{source}: invalid JSON ({exc.msg} at line {exc.lineno})"
        ) from exc
