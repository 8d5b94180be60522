import threading
import time

import pytest

from tripscout.fetcher import SearchCancelled, fetch_all
from tripscout.merge import merge_batches
from tripscout.models import Category, Place


def make_place(place_id, category=Category.FOOD):
    return Place(id=place_id, name=place_id, category=category, lat=35.0, lng=129.0)


def test_fetch_all_isolates_failing_task():
    def task1():
        return [make_place("a"), make_place("b")]

    def task2():
        raise RuntimeError("provider down")

    def task3():
        return [make_place("b"), make_place("c")]

    batches = fetch_all([task1, task2, task3], max_workers=3)

    assert [[p.id for p in b] for b in batches] == [["a", "b"], [], ["b", "c"]]
    assert merge_batches(batches) == merge_batches([task1(), task3()])


def test_fetch_all_keeps_submission_order_regardless_of_timing():
    def slow():
        time.sleep(0.05)
        return [make_place("slow")]

    def fast():
        return [make_place("fast")]

    batches = fetch_all([slow, fast], max_workers=2)
    assert [b[0].id for b in batches] == ["slow", "fast"]


def test_fetch_all_empty_and_none_results():
    assert fetch_all([]) == []
    assert fetch_all([lambda: None]) == [[]]


def test_fetch_all_runs_concurrently():
    barrier = threading.Barrier(3, timeout=2)

    def task():
        barrier.wait()
        return [make_place(threading.current_thread().name)]

    batches = fetch_all([task, task, task], max_workers=3)
    assert all(len(b) == 1 for b in batches)


def test_fetch_all_cancel_before_start():
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(SearchCancelled):
        fetch_all([lambda: [make_place("a")]], cancel_event=cancel)


def test_fetch_all_cancel_mid_flight_drops_queued_tasks():
    cancel = threading.Event()
    started = []
    release = threading.Event()

    def blocking():
        started.append("blocking")
        cancel.set()
        release.wait(1)
        return [make_place("blocking")]

    def queued():
        started.append("queued")
        return [make_place("queued")]

    with pytest.raises(SearchCancelled):
        try:
            fetch_all([blocking, queued, queued], max_workers=1, cancel_event=cancel)
        finally:
            release.set()

    assert started == ["blocking"]
