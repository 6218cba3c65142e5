"""Round-robin rotation over caller-supplied API keys."""

from __future__ import annotations

from itertools import cycle
from typing import Iterator

from ..parsing import split_api_keys


def cycle_api_keys(api_key: str | None) -> Iterator[str]:
    """Yield space-separated keys forever in round-robin order.

    Raises:
        ValueError: If no non-blank key is present.
    """

    keys = split_api_keys(api_key)
    if not keys:
        raise ValueError("At least one API key is required.")
    return cycle(keys)
