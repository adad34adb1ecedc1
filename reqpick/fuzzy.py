"""reqpick fuzzy matching - subsequence scoring for the interactive lists."""

from collections.abc import Callable, Iterable
from typing import TypeVar

T = TypeVar("T")

MATCH_SCORE = 1
CONSECUTIVE_BONUS = 10
WORD_START_BONUS = 8
CAMEL_BONUS = 6
MAX_GAP_PENALTY = 3
MAX_LEADING_PENALTY = 9

_SEPARATORS = " /\\-_.:?&=#"


def _char_bonus(target: str, idx: int) -> int:
    if idx == 0 or target[idx - 1] in _SEPARATORS:
        return WORD_START_BONUS
    if target[idx].isupper() and target[idx - 1].islower():
        return CAMEL_BONUS
    return 0


def _score_from(query: str, target: str, lowered: str, start: int) -> int | None:
    """Greedy match of query against target with query[0] pinned at start."""
    score = MATCH_SCORE + _char_bonus(target, start) - min(start, MAX_LEADING_PENALTY)
    prev = start
    for ch in query[1:]:
        idx = lowered.find(ch, prev + 1)
        if idx == -1:
            return None
        score += MATCH_SCORE + _char_bonus(target, idx)
        if idx == prev + 1:
            score += CONSECUTIVE_BONUS
        else:
            score -= min(idx - prev - 1, MAX_GAP_PENALTY)
        prev = idx
    return score


def best_match(query: str, target: str) -> int | None:
    """Score query as a case-insensitive subsequence of target.

    Returns None when not every query character can be matched in order.
    Higher is better: consecutive runs, word starts and camelCase humps
    earn bonuses, gaps and a late first match cost points. Each position
    of the first query character is tried and the best score kept.
    """
    if not query:
        return 0
    q = query.lower()
    lowered = target.lower()
    if len(lowered) != len(target):
        # Some characters change length when lowered; score on the lowered form
        target = lowered

    best: int | None = None
    start = lowered.find(q[0])
    while start != -1:
        score = _score_from(q, target, lowered, start)
        if score is None:
            # Later starts only leave less room for the rest of the query
            break
        if best is None or score > best:
            best = score
        start = lowered.find(q[0], start + 1)
    return best


def fuzzy_filter(
    query: str,
    items: Iterable[T],
    key: Callable[[T], str] = str,
) -> list[T]:
    """Filter and rank items against query.

    An empty query returns every item in its original order. Otherwise
    non-matching items are dropped and the rest sorted by descending
    score; the sort is stable, so ties keep their original order.
    """
    if not query:
        return list(items)

    scored: list[tuple[int, T]] = []
    for item in items:
        score = best_match(query, key(item))
        if score is not None:
            scored.append((score, item))
    scored.sort(key=lambda pair: -pair[0])
    return [item for _, item in scored]
