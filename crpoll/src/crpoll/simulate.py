from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from jsonschema import Draft202012Validator

from crpoll.audit import build_poll_result, write_poll_result
from crpoll.canonical import canonical_dumps
from crpoll.clock import ManualClock
from crpoll.commitment import IDENTITY_SCHEME_ID, get_scheme
from crpoll.config import DEFAULT_COMMIT_WINDOW, DEFAULT_REVEAL_WINDOW
from crpoll.engine import VotingEngine
from crpoll.errors import ClockWentBackwards, PollError, ScriptError
from crpoll.events import EventLog
from crpoll.registry import Authority, PollRegistry, WindowConfiguration

logger = logging.getLogger(__name__)

STEP_OPS = {"create", "configure", "commit", "reveal", "finalize"}

SCRIPT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["steps"],
    "properties": {
        "start": {"type": "integer", "minimum": 0},
        "windows": {
            "type": "object",
            "properties": {
                "commit": {"type": "integer"},
                "reveal": {"type": "integer"},
            },
        },
        "scheme": {"type": "string"},
        "allow_third_party_reveal": {"type": "boolean"},
        "polls": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string"},
                    "description": {"type": "string"},
                },
            },
        },
        "steps": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["at", "op"],
                "properties": {
                    "at": {"type": "integer", "minimum": 0},
                    "op": {"enum": sorted(STEP_OPS)},
                    "poll": {"type": "integer", "minimum": 0},
                    "voter": {"type": "string", "minLength": 1},
                    "vote": {"type": "boolean"},
                    "auxiliary": {"type": "string"},
                    "auxiliary_hex": {"type": "string", "pattern": "^([0-9a-fA-F]{2})*$"},
                    "digest": {"type": "string", "pattern": "^[0-9a-fA-F]{64}$"},
                    "name": {"type": "string"},
                    "description": {"type": "string"},
                    "commit": {"type": "integer"},
                    "reveal": {"type": "integer"},
                    "expect": {"type": "string"},
                },
            },
        },
    },
}


# ---------- loaders (BOM-tolerant) ----------

def load_script(path: Path) -> Dict[str, Any]:
    doc = yaml.safe_load(path.read_text(encoding="utf-8-sig"))
    validate_script(doc)
    return doc


def validate_script(doc: Any) -> None:
    v = Draft202012Validator(SCRIPT_SCHEMA)
    errors = sorted(v.iter_errors(doc), key=lambda e: list(e.path))
    if errors:
        msg = "\n".join([f"- {list(e.path)}: {e.message}" for e in errors])
        raise ScriptError("scenario schema validation failed:\n" + msg)


# ---------- step execution ----------

def _auxiliary(step: Dict[str, Any]) -> bytes:
    if "auxiliary_hex" in step:
        return bytes.fromhex(step["auxiliary_hex"])
    if "auxiliary" in step:
        return step["auxiliary"].encode("utf-8")
    raise ScriptError(f"step at t={step['at']} needs auxiliary or auxiliary_hex")


def _require(step: Dict[str, Any], *keys: str) -> None:
    missing = [k for k in keys if k not in step]
    if missing:
        raise ScriptError(f"{step['op']} step at t={step['at']} is missing {missing}")


def _run_step(engine: VotingEngine, authority: Authority, step: Dict[str, Any]) -> Any:
    op = step["op"]
    if op == "create":
        _require(step, "name")
        return engine.create_poll(authority, step["name"], step.get("description", ""))
    if op == "configure":
        _require(step, "commit", "reveal")
        cfg = engine.configure_windows(authority, step["commit"], step["reveal"])
        return {"commit": cfg.commit_window, "reveal": cfg.reveal_window}
    if op == "commit":
        _require(step, "poll", "voter")
        if "digest" in step:
            digest = bytes.fromhex(step["digest"])
        else:
            _require(step, "vote")
            digest = engine.scheme.commit(step["vote"], _auxiliary(step))
        engine.commit(step["poll"], step["voter"], digest)
        return digest.hex()
    if op == "reveal":
        _require(step, "poll", "voter", "vote")
        poll = engine.reveal(step["poll"], step["voter"], step["vote"], _auxiliary(step))
        return {"votes_for": poll.votes_for, "votes_against": poll.votes_against}
    if op == "finalize":
        _require(step, "poll")
        return list(engine.finalize(step["poll"]))
    raise ScriptError(f"unknown step op '{op}'")


def run_script(script: Dict[str, Any], *, outdir: Optional[Path] = None, strict: bool = False) -> Dict[str, Any]:
    """
    Runs a scenario on a ManualClock and returns a report.

    Each step records ok/error. A step may name the outcome it expects
    ("ok" or an error class name); in strict mode a different outcome raises
    ScriptError, otherwise it is reported under "unexpected".
    """
    validate_script(script)

    start = int(script.get("start", 0))
    windows = script.get("windows") or {}
    cfg = WindowConfiguration(
        commit_window=int(windows.get("commit", DEFAULT_COMMIT_WINDOW)),
        reveal_window=int(windows.get("reveal", DEFAULT_REVEAL_WINDOW)),
    )
    scheme = get_scheme(script.get("scheme", IDENTITY_SCHEME_ID))

    events_out = None
    if outdir is not None:
        outdir.mkdir(parents=True, exist_ok=True)
        events_out = outdir / "events.jsonl"
        if events_out.exists():
            events_out.unlink()

    authority = Authority()
    clock = ManualClock(start)
    engine = VotingEngine(
        PollRegistry(authority, cfg),
        clock=clock,
        scheme=scheme,
        events=EventLog(out=events_out),
        allow_third_party_reveal=bool(script.get("allow_third_party_reveal", True)),
    )

    for p in script.get("polls") or []:
        engine.create_poll(authority, p["name"], p.get("description", ""))

    outcomes: List[Dict[str, Any]] = []
    unexpected: List[int] = []
    finalized: Dict[int, Any] = {}

    for i, step in enumerate(script["steps"]):
        try:
            clock.set(step["at"])
        except ClockWentBackwards as e:
            raise ScriptError(f"step {i}: steps must be in time order ({e})") from None

        outcome: Dict[str, Any] = {"index": i, "at": step["at"], "op": step["op"]}
        try:
            outcome["result"] = _run_step(engine, authority, step)
            outcome["ok"] = True
            outcome["error"] = None
            if step["op"] == "finalize":
                finalized[step["poll"]] = outcome["result"]
        except ScriptError:
            raise
        except PollError as e:
            outcome["ok"] = False
            outcome["error"] = type(e).__name__
            outcome["message"] = str(e)

        got = "ok" if outcome["ok"] else outcome["error"]
        expect = step.get("expect")
        if expect is not None and expect != got:
            if strict:
                raise ScriptError(f"step {i} ({step['op']} at t={step['at']}): expected {expect}, got {got}")
            logger.warning("step %s (%s at t=%s): expected %s, got %s", i, step["op"], step["at"], expect, got)
            unexpected.append(i)
        outcomes.append(outcome)

    results: List[Dict[str, Any]] = []
    for poll_id in sorted(finalized):
        poll = engine.get_poll(poll_id)
        doc = build_poll_result(poll, scheme, commitments_recorded=engine.store.recorded_count(poll_id))
        results.append(doc)
        if outdir is not None:
            write_poll_result(outdir, doc)

    report = {
        "scheme": scheme.scheme_id,
        "allow_third_party_reveal": engine.allow_third_party_reveal,
        "outcomes": outcomes,
        "unexpected": unexpected,
        "polls": [engine.get_poll(i).to_dict() for i in range(engine.registry.poll_count())],
        "results": results,
        "events": [e.to_dict() for e in engine.events.events()],
    }
    if outdir is not None:
        (outdir / "report.json").write_text(canonical_dumps(report), encoding="utf-8")
    return report


def run_script_file(path: Path, *, outdir: Optional[Path] = None, strict: bool = False) -> Dict[str, Any]:
    return run_script(load_script(path), outdir=outdir, strict=strict)


def dumps_report(report: Dict[str, Any]) -> str:
    return json.dumps(report, indent=2, sort_keys=True)
