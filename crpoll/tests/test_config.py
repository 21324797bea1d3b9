import pytest

import crpoll
from crpoll import errors
from crpoll.clock import ManualClock, SystemClock
from crpoll.commitment import SALTED_SCHEME
from crpoll.config import DEFAULT_COMMIT_WINDOW, load_config, strict_from_env
from crpoll.engine import VotingEngine
from crpoll.errors import ClockWentBackwards, InvalidWindow
from crpoll.registry import Authority

_VARS = (
    "CRPOLL_COMMIT_WINDOW_SECS",
    "CRPOLL_REVEAL_WINDOW_SECS",
    "CRPOLL_SCHEME",
    "CRPOLL_ALLOW_THIRD_PARTY_REVEAL",
    "CRPOLL_EVENTS_OUT",
    "CRPOLL_STRICT",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    cfg = load_config()
    assert cfg.windows.commit_window == DEFAULT_COMMIT_WINDOW
    assert cfg.scheme.insecure is True
    assert cfg.allow_third_party_reveal is True
    assert cfg.events_out is None
    assert cfg.strict is False


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("CRPOLL_COMMIT_WINDOW_SECS", "120")
    monkeypatch.setenv("CRPOLL_REVEAL_WINDOW_SECS", "259200")
    monkeypatch.setenv("CRPOLL_SCHEME", "salted.sha256.v1")
    monkeypatch.setenv("CRPOLL_ALLOW_THIRD_PARTY_REVEAL", "no")
    monkeypatch.setenv("CRPOLL_EVENTS_OUT", str(tmp_path / "events.jsonl"))
    monkeypatch.setenv("CRPOLL_STRICT", "1")

    cfg = load_config()
    assert (cfg.windows.commit_window, cfg.windows.reveal_window) == (120, 259200)
    assert cfg.scheme is SALTED_SCHEME
    assert cfg.allow_third_party_reveal is False
    assert cfg.strict is True

    clock = ManualClock(0)
    auth = Authority()
    eng = VotingEngine.from_config(cfg, auth, clock=clock)
    pid = eng.create_poll(auth, "p", "")
    eng.commit(pid, "A", SALTED_SCHEME.commit(True, b"s" * 16))
    assert (tmp_path / "events.jsonl").exists()


@pytest.mark.parametrize("raw", ["119", "259201", "abc", "-1"])
def test_bad_window_env(monkeypatch, raw):
    monkeypatch.setenv("CRPOLL_REVEAL_WINDOW_SECS", raw)
    with pytest.raises(InvalidWindow):
        load_config()


def test_strict_flag_ignores_other_settings(monkeypatch):
    assert strict_from_env() is False
    monkeypatch.setenv("CRPOLL_COMMIT_WINDOW_SECS", "5")
    monkeypatch.setenv("CRPOLL_STRICT", "yes")
    assert strict_from_env() is True


def test_package_exports_every_error():
    for name in dir(errors):
        obj = getattr(errors, name)
        if isinstance(obj, type) and issubclass(obj, errors.PollError):
            assert getattr(crpoll, name) is obj
            assert name in crpoll.__all__


def test_manual_clock_never_goes_back():
    c = ManualClock(10)
    assert c.advance(5) == 15
    c.set(15)
    with pytest.raises(ClockWentBackwards):
        c.set(14)
    with pytest.raises(ClockWentBackwards):
        c.advance(-1)
    assert c.now() == 15


def test_system_clock_is_non_decreasing():
    readings = iter([1000.5, 1002.0, 990.0, 1003.9])
    c = SystemClock(source=lambda: next(readings))
    assert [c.now() for _ in range(4)] == [1000, 1002, 1002, 1003]
