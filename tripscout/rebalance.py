"""Category rebalancing of a ranked candidate list.

Each selected category gets a quota of ``min(min_per_cat, available)`` places,
widened to its first ``per_cat_top`` places so every top pick stays listed.
The quotas must all be met inside a head window at the front of the list:
the window is ``total_cap`` long when a cap is given (raised to the sum of the
quotas if the cap is too small), otherwise exactly the sum of the quotas.

Quota members that rank outside the window are promoted into it. To make
room, the lowest-ranked window members that do not count towards any quota
are pushed to just after the window. Apart from these moves every place keeps
its relative order, and the order within each category never changes. When
several categories need promotion, promoted places are interleaved by their
original rank rather than by category.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .models import Category, Place

logger = logging.getLogger(__name__)


def _selected_in_order(selected: Iterable[Category]) -> List[Category]:
    wanted = set(selected)
    return [c for c in Category if c in wanted]


def pick_top_per_category(
    candidates: Sequence[Place], selected: Iterable[Category], per_cat_top: int
) -> List[Place]:
    picks: List[Place] = []
    if per_cat_top <= 0:
        return picks
    for category in _selected_in_order(selected):
        members = [p for p in candidates if p.category == category]
        picks.extend(members[:per_cat_top])
    return picks


def rebalance_by_category(
    candidates: Sequence[Place],
    selected_categories: Iterable[Category],
    min_per_cat: int,
    per_cat_top: int,
    total_cap: Optional[int] = None,
) -> Tuple[List[Place], List[Place]]:
    """Return (top_picks, ordered_places) for a ranked candidate list."""
    if min_per_cat < 0 or per_cat_top < 0:
        raise ValueError("min_per_cat and per_cat_top must be non-negative")
    if total_cap is not None and total_cap < 0:
        raise ValueError("total_cap must be non-negative")

    candidates = list(candidates)
    selected = _selected_in_order(selected_categories)
    top_picks = pick_top_per_category(candidates, selected, per_cat_top)

    # Quota members: the first min_per_cat places of each selected category,
    # plus its top picks.
    protected: Set[int] = set()
    quotas: Dict[Category, int] = {}
    for category in selected:
        indexes = [i for i, p in enumerate(candidates) if p.category == category]
        quota = min(max(min_per_cat, per_cat_top), len(indexes))
        quotas[category] = quota
        protected.update(indexes[:quota])

    window = max(total_cap or 0, len(protected))
    window = min(window, len(candidates))

    promoted = sorted(i for i in protected if i >= window)
    displaced: Set[int] = set()
    if promoted:
        room_makers = [i for i in range(window) if i not in protected]
        displaced = set(room_makers[len(room_makers) - len(promoted):])
        logger.debug(
            "Rebalance: promoting %s places, displacing %s", len(promoted), len(displaced)
        )

    head = [i for i in range(window) if i not in displaced] + promoted
    promoted_set = set(promoted)
    tail = sorted(displaced) + [
        i for i in range(window, len(candidates)) if i not in promoted_set
    ]

    ordered = [candidates[i] for i in head + tail]
    if total_cap is not None:
        if total_cap < len(protected):
            logger.info(
                "Rebalance: total_cap %s below category quotas %s, keeping %s",
                total_cap,
                quotas,
                window,
            )
        ordered = ordered[:window]
    return top_picks, ordered
