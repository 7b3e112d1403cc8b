from __future__ import annotations

import io
import json
from pathlib import Path

import httpx
import pytest
from conftest import http_candidate

from spellbook.errors import CandidateSourceError
from spellbook.sources import MAX_SOURCE_BYTES, read_candidate


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_reads_file(tmp_path: Path) -> None:
    candidate = http_candidate()
    p = tmp_path / "spell.json"
    p.write_text(json.dumps(candidate), encoding="utf-8")
    assert read_candidate(str(p)) == candidate


def test_reads_stdin(monkeypatch) -> None:
    candidate = http_candidate()
    monkeypatch.setattr("sys.stdin", io.StringIO(json.dumps(candidate)))
    assert read_candidate("-") == candidate


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(CandidateSourceError, match="missing.json"):
        read_candidate(str(tmp_path / "missing.json"))


def test_invalid_json(tmp_path: Path) -> None:
    p = tmp_path / "bad.json"
    p.write_text("{nope", encoding="utf-8")
    with pytest.raises(CandidateSourceError, match="invalid JSON"):
        read_candidate(str(p))


def test_reads_url() -> None:
    candidate = http_candidate()

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url == "https://spells.example.com/s.json"
        return httpx.Response(200, json=candidate)

    with _client(handler) as client:
        assert read_candidate("https://spells.example.com/s.json", client=client) == candidate


def test_url_http_error_is_wrapped() -> None:
    with _client(lambda request: httpx.Response(404, text="gone")) as client:
        with pytest.raises(CandidateSourceError, match="404"):
            read_candidate("https://spells.example.com/missing.json", client=client)


def test_url_size_limit() -> None:
    payload = b" " * (MAX_SOURCE_BYTES + 1)
    with _client(lambda request: httpx.Response(200, content=payload)) as client:
        with pytest.raises(CandidateSourceError, match="exceeds"):
            read_candidate("https://spells.example.com/big.json", client=client)
