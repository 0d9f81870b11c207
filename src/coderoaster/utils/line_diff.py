"""Line-granular diff helpers used for cache staleness decisions."""

from __future__ import annotations

from typing import Sequence

__all__ = ["split_lines", "count_changed_lines"]


def split_lines(text: str) -> list[str]:
    """Split *text* into lines, ignoring a single trailing newline.

    ``"a\\nb"`` and ``"a\\nb\\n"`` both yield ``["a", "b"]``; ``""`` yields no
    lines. Windows line endings are normalized.
    """

    if not text:
        return []
    normalized = text.replace("\r\n", "\n")
    lines = normalized.split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


def count_changed_lines(old_text: str, new_text: str, *, limit: int | None = None) -> int:
    """Return the number of inserted plus deleted lines between two texts.

    The count is the length of the shortest insert/delete edit script, so
    equal texts yield ``0`` and swapping the arguments gives the same result.

    With ``limit`` set the search stops as soon as the script is known to be
    longer than ``limit`` and ``limit + 1`` is returned. Counts up to
    ``limit`` are exact.
    """

    if limit is not None and limit < 0:
        raise ValueError("limit must be non-negative")
    if old_text == new_text:
        return 0
    old_lines = split_lines(old_text)
    new_lines = split_lines(new_text)

    start = 0
    bound = min(len(old_lines), len(new_lines))
    while start < bound and old_lines[start] == new_lines[start]:
        start += 1

    old_end = len(old_lines)
    new_end = len(new_lines)
    while old_end > start and new_end > start and old_lines[old_end - 1] == new_lines[new_end - 1]:
        old_end -= 1
        new_end -= 1

    return _edit_distance(old_lines[start:old_end], new_lines[start:new_end], limit)


def _edit_distance(a: Sequence[str], b: Sequence[str], limit: int | None = None) -> int:
    """Myers' O(ND) shortest edit script length (insertions + deletions)."""

    n, m = len(a), len(b)
    max_d = n + m
    if limit is not None and abs(n - m) > limit:
        return limit + 1
    if n == 0 or m == 0:
        return max_d
    last_d = max_d if limit is None else min(max_d, limit)
    offset = max_d
    frontier = [0] * (2 * max_d + 2)
    for d in range(last_d + 1):
        for k in range(-d, d + 1, 2):
            if k == -d or (k != d and frontier[offset + k - 1] < frontier[offset + k + 1]):
                x = frontier[offset + k + 1]
            else:
                x = frontier[offset + k - 1] + 1
            y = x - k
            while x < n and y < m and a[x] == b[y]:
                x += 1
                y += 1
            frontier[offset + k] = x
            if x >= n and y >= m:
                return d
    return max_d if limit is None else limit + 1
