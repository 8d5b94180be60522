from tripscout.merge import exclude_ids, merge_batches
from tripscout.models import Category, Place


def make_place(place_id, distance=None):
    return Place(
        id=place_id,
        name=place_id,
        category=Category.CAFE,
        lat=37.5,
        lng=127.0,
        distance_meters=distance,
    )


def test_merge_first_seen_wins_and_keeps_order():
    near = make_place("p1", distance=100)
    far = make_place("p1", distance=2500)
    batches = [
        [near, make_place("p2")],
        [make_place("p3"), far, make_place("p2")],
    ]
    merged = merge_batches(batches)
    assert [p.id for p in merged] == ["p1", "p2", "p3"]
    assert merged[0] is near


def test_merge_has_no_duplicate_ids():
    batches = [[make_place(f"p{i % 4}") for i in range(j, j + 6)] for j in range(5)]
    ids = [p.id for p in merge_batches(batches)]
    assert len(ids) == len(set(ids))


def test_merge_empty_batches():
    assert merge_batches([]) == []
    assert merge_batches([[], []]) == []


def test_exclude_ids():
    places = [make_place("a"), make_place("b"), make_place("c")]
    assert [p.id for p in exclude_ids(places, {"b"})] == ["a", "c"]
    assert exclude_ids(places, []) == places
