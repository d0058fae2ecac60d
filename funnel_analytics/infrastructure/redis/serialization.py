"""JSON encoding of snapshots for the Redis mirror.

Rates are tagged so they round-trip back into ``Rate`` objects instead of
plain dicts.
"""

import json
from typing import Any

from funnel_analytics.domain.models import MetricBlock
from funnel_analytics.domain.rates import Rate

_RATE_TAG = "__rate__"


def _encode(value: Any) -> Any:
    if isinstance(value, Rate):
        return {_RATE_TAG: True, "value": value.value, "formatted": value.formatted}
    if isinstance(value, dict):
        return {k: _encode(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode(v) for v in value]
    return value


def _decode_hook(obj: dict) -> Any:
    if obj.get(_RATE_TAG):
        return Rate(value=obj["value"], formatted=obj["formatted"])
    return obj


def dump_block(block: MetricBlock) -> str:
    return json.dumps(_encode(block.data))


def load_block(name: str, raw: str) -> MetricBlock:
    return MetricBlock(name=name, data=json.loads(raw, object_hook=_decode_hook))
