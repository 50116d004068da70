"""Human-readable thread reference ids (``HRS-QN-25001``).

The next id is max+1 over every existing id of the scheme, not count+1, so
gaps left by deleted or hand-typed ids are never reused below the maximum.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from quoteflow.models import Thread


def ref_pattern(prefix: str) -> re.Pattern[str]:
    # Anything after the number (e.g. a vessel code suffix) is ignored
    return re.compile(rf"{re.escape(prefix)}-(\d{{2,}})", re.IGNORECASE)


def next_ref_id(refs: Iterable[str | None], prefix: str = "HRS-QN", seed: int = 25000) -> str:
    """Return ``PREFIX-<max+1>`` over the numbers found in ``refs``.

    ``seed`` stands in for the maximum when nothing matches, which keeps new
    ids clear of historical ones issued outside this system.
    """
    pattern = ref_pattern(prefix)
    highest: int | None = None
    for ref in refs:
        if not ref:
            continue
        match = pattern.search(ref)
        if match is None:
            continue
        number = int(match.group(1))
        if highest is None or number > highest:
            highest = number

    base = seed if highest is None else highest
    return f"{prefix}-{base + 1}"


def thread_refs(threads: Iterable[Thread]) -> list[str]:
    """Reference string of each thread: the user ref, else the thread id."""
    return [t.user_ref_id or t.thread_id for t in threads]
