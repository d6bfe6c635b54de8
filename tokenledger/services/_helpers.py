"""Shared utilities for the service layer."""

import json
from collections.abc import Mapping

# Every JSON TEXT column in this DB stores a dict.
JsonDict = dict[str, object]


def load_json(raw: str | None) -> JsonDict | None:
    """Deserialize a JSON TEXT column. Always a dict or None in this codebase."""
    if not raw:
        return None
    result: object = json.loads(raw)
    if isinstance(result, dict):
        return dict(result)
    return None


def dump_json(obj: Mapping[str, object]) -> str:
    """Serialize for a JSON TEXT column. Token amounts are written as strings."""
    data: JsonDict = {
        k: str(v) if isinstance(v, int) and not isinstance(v, bool) else v
        for k, v in obj.items()
    }
    return json.dumps(data, default=str, sort_keys=True)


def is_account(value: str | None) -> bool:
    """True when ``value`` names an account: non-empty and not just whitespace."""
    return bool(value and value.strip())
