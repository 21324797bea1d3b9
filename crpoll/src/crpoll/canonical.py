from __future__ import annotations

import json
from typing import Any


def canonical_dumps(obj: Any) -> str:
    """Sorted keys, no whitespace, UTF-8 kept as is. Digests and JSONL lines use this form."""
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"), sort_keys=True)
