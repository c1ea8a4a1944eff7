"""Cache key normalization

Equivalent requests must share one cache entry: session parameters are
dropped, aliased parameter names collapse to their canonical name, and the
remaining parameters are serialized in sorted order.
"""
import json
from typing import Any, Dict, Mapping, Optional

# Parameters that identify a visitor rather than a search
SESSION_PARAMS = frozenset({"sessionId", "session_id"})

# alias -> canonical name; applied only when the canonical name is absent
PARAM_ALIASES: Dict[str, str] = {
    "partial_query": "query",
}


def normalize_params(raw_params: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Drop session parameters and collapse aliases, sorted by name"""
    if raw_params is None:
        return {}
    if not isinstance(raw_params, Mapping):
        raise ValueError(f"params must be a mapping, got {type(raw_params).__name__}")

    params = {k: v for k, v in raw_params.items() if k not in SESSION_PARAMS}

    for alias, canonical in PARAM_ALIASES.items():
        if alias in params and canonical not in params:
            params[canonical] = params.pop(alias)

    return {key: params[key] for key in sorted(params)}


def generate_cache_key(endpoint: str, raw_params: Optional[Mapping[str, Any]]) -> str:
    """Canonical ``{endpoint}:{sortedParamsJSON}`` key"""
    if not endpoint:
        raise ValueError("endpoint is required")

    params = normalize_params(raw_params)
    serialized = json.dumps(
        params,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return f"{endpoint}:{serialized}"
