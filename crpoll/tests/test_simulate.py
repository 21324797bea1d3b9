import json
from pathlib import Path

import pytest

from crpoll.audit import load_poll_result
from crpoll.errors import InvalidWindow, ScriptError
from crpoll.simulate import load_script, run_script, run_script_file

SCENARIOS = Path(__file__).resolve().parents[1] / "scenarios"


def test_demo_scenario_matches_expectations(tmp_path: Path):
    outdir = tmp_path / "demo"
    report = run_script_file(SCENARIOS / "precompute_demo.yaml", outdir=outdir, strict=True)

    assert report["unexpected"] == []
    finals = [o["result"] for o in report["outcomes"] if o["op"] == "finalize" and o["ok"]]
    assert finals == [["Budget", "Approve the 2026 budget?", 1, 0]] * 2

    kinds = [e["kind"] for e in report["events"]]
    assert kinds == ["CommitRecorded", "CommitRecorded", "VoteRevealed", "PollClosed", "PollClosed"]

    doc = load_poll_result(outdir / "poll_0_result.json")
    assert doc["tally"]["total"] == 1
    assert doc["tally"]["commitments_recorded"] == 2
    assert (outdir / "events.jsonl").read_text(encoding="utf-8").count("\n") == 5
    assert json.loads((outdir / "report.json").read_text(encoding="utf-8"))["scheme"] == "identity.sha256.v0"


def test_unexpected_outcome_reported_or_raised():
    script = {
        "windows": {"commit": 120, "reveal": 120},
        "polls": [{"name": "p"}],
        "steps": [
            {"at": 0, "op": "commit", "poll": 0, "voter": "A", "vote": True, "auxiliary": "A"},
            {"at": 5, "op": "finalize", "poll": 0, "expect": "ok"},
        ],
    }
    report = run_script(script)
    assert report["unexpected"] == [1]
    assert report["outcomes"][1]["error"] == "RevealNotFinished"

    with pytest.raises(ScriptError):
        run_script(script, strict=True)


def test_create_configure_and_salted_steps():
    secret_hex = "ab" * 16
    script = {
        "scheme": "salted.sha256.v1",
        "windows": {"commit": 120, "reveal": 120},
        "steps": [
            {"at": 0, "op": "configure", "commit": 300, "reveal": 300},
            {"at": 0, "op": "create", "name": "q", "description": "d"},
            {"at": 1, "op": "configure", "commit": 5, "reveal": 300, "expect": "InvalidWindow"},
            {"at": 10, "op": "commit", "poll": 0, "voter": "A", "vote": False, "auxiliary_hex": secret_hex},
            {"at": 301, "op": "reveal", "poll": 0, "voter": "A", "vote": False, "auxiliary_hex": secret_hex},
            {"at": 601, "op": "finalize", "poll": 0},
        ],
    }
    report = run_script(script, strict=True)
    assert report["outcomes"][-1]["result"] == ["q", "d", 0, 1]
    assert report["results"][0]["scheme"]["insecure"] is False


def test_steps_must_be_time_ordered():
    script = {"steps": [{"at": 10, "op": "create", "name": "p"}, {"at": 5, "op": "create", "name": "q"}]}
    with pytest.raises(ScriptError):
        run_script(script)


def test_invalid_script_rejected(tmp_path: Path):
    p = tmp_path / "bad.yaml"
    p.write_text("steps:\n  - {at: 0, op: launch}\n", encoding="utf-8")
    with pytest.raises(ScriptError):
        load_script(p)

    with pytest.raises(InvalidWindow):
        run_script({"windows": {"commit": 1}, "steps": []})
