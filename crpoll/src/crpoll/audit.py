from __future__ import annotations

"""
Poll Result v1 (public, auditable tally)

A closed poll is published as canonical JSON:
  outdir/poll_<id>_result.json

result_sha256 covers the canonical body without itself, so anyone holding
the file can re-check it with verify_poll_result().
"""

import hashlib
import json
import logging
import platform
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from jsonschema import Draft202012Validator

from crpoll.canonical import canonical_dumps
from crpoll.commitment import CommitmentScheme
from crpoll.errors import ResultSchemaError
from crpoll.registry import Poll

logger = logging.getLogger(__name__)

POLL_RESULT_SCHEMA_ID = "crpoll.poll_result.v1"

POLL_RESULT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": [
        "version",
        "schema_id",
        "created_at",
        "poll",
        "tally",
        "scheme",
        "result_sha256",
    ],
    "properties": {
        "version": {"const": 1},
        "schema_id": {"const": POLL_RESULT_SCHEMA_ID},
        "created_at": {"type": "string"},
        "poll": {
            "type": "object",
            "required": ["id", "name", "description", "commit_deadline", "reveal_deadline"],
            "properties": {
                "id": {"type": "integer", "minimum": 0},
                "name": {"type": "string"},
                "description": {"type": "string"},
                "commit_deadline": {"type": "integer"},
                "reveal_deadline": {"type": "integer"},
            },
        },
        "tally": {
            "type": "object",
            "required": ["votes_for", "votes_against", "total"],
            "properties": {
                "votes_for": {"type": "integer", "minimum": 0},
                "votes_against": {"type": "integer", "minimum": 0},
                "total": {"type": "integer", "minimum": 0},
                "commitments_recorded": {"type": "integer", "minimum": 0},
            },
        },
        "scheme": {
            "type": "object",
            "required": ["id", "insecure"],
            "properties": {
                "id": {"type": "string"},
                "insecure": {"type": "boolean"},
            },
        },
        "environment": {"type": "object"},
        "result_sha256": {"type": "string", "pattern": "^[0-9a-f]{64}$"},
    },
}

_validator = Draft202012Validator(POLL_RESULT_SCHEMA)


def sha256_bytes(b: bytes) -> str:
    h = hashlib.sha256()
    h.update(b)
    return h.hexdigest()


def now_utc_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def env_info() -> Dict[str, Any]:
    return {
        "python_version": sys.version.split()[0],
        "platform": platform.platform(),
    }


def _body_sha256(doc: Dict[str, Any]) -> str:
    body = dict(doc)
    body.pop("result_sha256", None)
    return sha256_bytes(canonical_dumps(body).encode("utf-8"))


def build_poll_result(poll: Poll, scheme: CommitmentScheme, *, commitments_recorded: int | None = None) -> Dict[str, Any]:
    tally: Dict[str, Any] = {
        "votes_for": poll.votes_for,
        "votes_against": poll.votes_against,
        "total": poll.votes_for + poll.votes_against,
    }
    if commitments_recorded is not None:
        tally["commitments_recorded"] = commitments_recorded

    doc: Dict[str, Any] = {
        "version": 1,
        "schema_id": POLL_RESULT_SCHEMA_ID,
        "created_at": now_utc_iso(),
        "poll": {
            "id": poll.id,
            "name": poll.name,
            "description": poll.description,
            "commit_deadline": poll.commit_deadline,
            "reveal_deadline": poll.reveal_deadline,
        },
        "tally": tally,
        "scheme": {"id": scheme.scheme_id, "insecure": scheme.insecure},
        "environment": env_info(),
    }
    doc["result_sha256"] = _body_sha256(doc)
    return doc


def validate_poll_result(doc: Dict[str, Any]) -> None:
    errs = sorted(_validator.iter_errors(doc), key=lambda e: list(e.path))
    if errs:
        msg = "\n".join([f"- {list(e.path)}: {e.message}" for e in errs])
        raise ResultSchemaError("poll result schema validation failed:\n" + msg)


def verify_poll_result(doc: Dict[str, Any]) -> None:
    """
    Schema check, digest check, and tally arithmetic.
    """
    validate_poll_result(doc)
    if _body_sha256(doc) != doc["result_sha256"]:
        raise ResultSchemaError("result_sha256 mismatch (document altered after it was built)")
    t = doc["tally"]
    if t["votes_for"] + t["votes_against"] != t["total"]:
        raise ResultSchemaError("tally total does not equal votes_for + votes_against")
    if "commitments_recorded" in t and t["total"] > t["commitments_recorded"]:
        raise ResultSchemaError("more votes counted than commitments recorded")


def write_poll_result(outdir: Path, result: Dict[str, Any]) -> Path:
    verify_poll_result(result)
    outdir.mkdir(parents=True, exist_ok=True)
    path = outdir / f"poll_{result['poll']['id']}_result.json"
    path.write_text(canonical_dumps(result), encoding="utf-8")
    logger.info("wrote poll result %s (sha256 %s)", path, result["result_sha256"])
    return path


def load_poll_result(path: Path) -> Dict[str, Any]:
    doc = json.loads(path.read_text(encoding="utf-8-sig"))
    verify_poll_result(doc)
    return doc
