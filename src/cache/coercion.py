"""Reconstruction of typed results from cached payloads.

A value read back from a JSON-encoding backend has lost its Python type: a
list of row dicts may come back as a list of arbitrary elements and a float
may come back as an int, a numeric string or a wrapper object. Each result
type gets one coerce function that enumerates the shapes it accepts and
returns None for anything else. None means "treat as a cache miss".
"""

import math
from collections.abc import Mapping, Sequence
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

Row = dict[str, Any]

# Key used when a scalar is stored inside a single-field object
WRAPPED_VALUE_KEY = "value"


def coerce_rows(value: Any) -> list[Row] | None:
    """Rebuild a list of aggregate rows.

    Accepted shapes:
        - a list whose elements are all dicts (returned unchanged)
        - a list or tuple of mixed elements; mappings are copied into
          dicts and any other element leaves an empty row in its slot

    Args:
        value: Payload returned by the cache.

    Returns:
        List of row dicts, or None if the payload is not a sequence.
    """
    if isinstance(value, list) and all(isinstance(item, dict) for item in value):
        return value

    if not isinstance(value, Sequence) or isinstance(value, str | bytes | bytearray):
        return None

    rows: list[Row] = []
    malformed = 0
    for item in value:
        if isinstance(item, Mapping):
            rows.append(dict(item))
        else:
            malformed += 1
            rows.append({})

    if malformed:
        logger.warning(
            "cache_rows_partially_malformed",
            total=len(rows),
            malformed=malformed,
        )
    return rows


def coerce_percentile(value: Any) -> float | None:
    """Rebuild a percentile value.

    Accepted shapes:
        - int or float
        - a numeric string such as "95.5"
        - an object wrapping one of the above under "value"

    The result must be finite and within [0, 100].

    Args:
        value: Payload returned by the cache.

    Returns:
        The percentile as a float, or None if the payload is unusable.
    """
    if isinstance(value, Mapping):
        if WRAPPED_VALUE_KEY not in value:
            return None
        value = value[WRAPPED_VALUE_KEY]

    number = _to_float(value)
    if number is None or not math.isfinite(number) or not 0.0 <= number <= 100.0:
        return None
    return number


def _to_float(value: Any) -> float | None:
    # bool is an int subclass but never a valid percentile
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None
