"""Order-preserving merge of candidate batches."""
from __future__ import annotations

from typing import Iterable, List, Set

from .models import Place


def merge_batches(batches: Iterable[Iterable[Place]]) -> List[Place]:
    """Flatten batches in order; the first place seen for an id wins."""
    seen: Set[str] = set()
    merged: List[Place] = []
    for batch in batches:
        for place in batch:
            if place.id in seen:
                continue
            seen.add(place.id)
            merged.append(place)
    return merged


def exclude_ids(places: Iterable[Place], ids: Iterable[str]) -> List[Place]:
    excluded = set(ids)
    return [p for p in places if p.id not in excluded]
