import json
from pathlib import Path

import pytest

from crpoll.audit import build_poll_result, load_poll_result, verify_poll_result, write_poll_result
from crpoll.commitment import IDENTITY_SCHEME, SALTED_SCHEME
from crpoll.errors import ResultSchemaError
from crpoll.registry import Poll


def _poll(votes_for=3, votes_against=2):
    return Poll(
        id=4,
        name="Budget",
        description="Approve?",
        commit_deadline=120,
        reveal_deadline=240,
        votes_for=votes_for,
        votes_against=votes_against,
    )


def test_result_document_round_trip(tmp_path: Path):
    doc = build_poll_result(_poll(), SALTED_SCHEME, commitments_recorded=6)
    assert doc["tally"] == {"votes_for": 3, "votes_against": 2, "total": 5, "commitments_recorded": 6}
    assert doc["scheme"] == {"id": "salted.sha256.v1", "insecure": False}

    p = write_poll_result(tmp_path / "results", doc)
    assert p.name == "poll_4_result.json"
    loaded = load_poll_result(p)
    assert loaded["result_sha256"] == doc["result_sha256"]


def test_tampered_result_is_rejected(tmp_path: Path):
    doc = build_poll_result(_poll(), IDENTITY_SCHEME)
    assert doc["scheme"]["insecure"] is True
    p = write_poll_result(tmp_path, doc)

    data = json.loads(p.read_text(encoding="utf-8"))
    data["tally"]["votes_for"] = 30
    p.write_text(json.dumps(data), encoding="utf-8")
    with pytest.raises(ResultSchemaError):
        load_poll_result(p)


def test_schema_violations():
    doc = build_poll_result(_poll(), IDENTITY_SCHEME)
    del doc["tally"]
    with pytest.raises(ResultSchemaError):
        verify_poll_result(doc)


def test_more_votes_than_commitments_rejected():
    doc = build_poll_result(_poll(), IDENTITY_SCHEME, commitments_recorded=1)
    with pytest.raises(ResultSchemaError):
        verify_poll_result(doc)
