from __future__ import annotations

"""
Engine configuration from the environment.

  CRPOLL_COMMIT_WINDOW_SECS        initial commit window (default 86400)
  CRPOLL_REVEAL_WINDOW_SECS        initial reveal window (default 86400)
  CRPOLL_SCHEME                    identity.sha256.v0 (default) | salted.sha256.v1
  CRPOLL_ALLOW_THIRD_PARTY_REVEAL  truthy (default on)
  CRPOLL_EVENTS_OUT                optional JSONL file for notifications
  CRPOLL_STRICT                    truthy; scenario runs stop on an unexpected outcome
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from crpoll.commitment import IDENTITY_SCHEME_ID, CommitmentScheme, get_scheme, get_scheme_from_env
from crpoll.errors import InvalidWindow
from crpoll.events import events_out_from_env
from crpoll.registry import WindowConfiguration, validate_window

DEFAULT_COMMIT_WINDOW = 86400
DEFAULT_REVEAL_WINDOW = 86400


def _truthy(v: str) -> bool:
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_flag(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    return _truthy(v)


def _env_window(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise InvalidWindow(f"{name} must be an integer number of seconds (got {raw!r})") from None
    return validate_window(name, value)


def strict_from_env() -> bool:
    return _env_flag("CRPOLL_STRICT", False)


@dataclass(frozen=True)
class EngineConfig:
    windows: WindowConfiguration
    scheme_id: str = IDENTITY_SCHEME_ID
    allow_third_party_reveal: bool = True
    events_out: Optional[Path] = None
    strict: bool = False

    @property
    def scheme(self) -> CommitmentScheme:
        return get_scheme(self.scheme_id)


def load_config() -> EngineConfig:
    windows = WindowConfiguration(
        commit_window=_env_window("CRPOLL_COMMIT_WINDOW_SECS", DEFAULT_COMMIT_WINDOW),
        reveal_window=_env_window("CRPOLL_REVEAL_WINDOW_SECS", DEFAULT_REVEAL_WINDOW),
    )
    scheme_id = get_scheme_from_env().scheme_id
    return EngineConfig(
        windows=windows,
        scheme_id=scheme_id,
        allow_third_party_reveal=_env_flag("CRPOLL_ALLOW_THIRD_PARTY_REVEAL", True),
        events_out=events_out_from_env(),
        strict=strict_from_env(),
    )
