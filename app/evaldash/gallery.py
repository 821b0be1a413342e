from __future__ import annotations

from typing import Callable, Collection, Dict, List, Sequence, Tuple

from evaldash.rows import SampleRecord

ALL_TAGS = "all"
SAMPLE_TAGS = ("correct", "wrong")

# sort key -> (key function, descending)
SORTS: Dict[str, Tuple[Callable[[SampleRecord], object], bool]] = {
    "conf_desc": (lambda s: abs(s.y_prob - 0.5), True),
    "conf_asc": (lambda s: abs(s.y_prob - 0.5), False),
    "time_desc": (lambda s: s.timestamp, True),
    "time_asc": (lambda s: s.timestamp, False),
}


def filter_sort(
    samples: Sequence[SampleRecord],
    tag: str,
    sort_key: str,
    *,
    known_tags: Collection[str] = SAMPLE_TAGS,
) -> List[SampleRecord]:
    """Gallery view: keep samples carrying ``tag``, then sort by ``sort_key``.

    "all" and any tag outside ``known_tags`` skip filtering; an unknown
    ``sort_key`` keeps the filtered order. Always returns a new list.
    """
    items = list(samples)
    if tag != ALL_TAGS and tag in known_tags:
        items = [s for s in items if s.tag == tag]

    sort = SORTS.get(sort_key)
    if sort is None:
        return items
    key, descending = sort
    # sorted() stays stable with reverse=True
    return sorted(items, key=key, reverse=descending)
