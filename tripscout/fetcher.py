"""Concurrent fan-out of independent candidate searches.

Every task is a zero-argument callable returning a batch of places. Failures
stay inside the task that raised them: the batch becomes empty and the other
branches carry on.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from . import config
from .models import Place

logger = logging.getLogger(__name__)

FetchTask = Callable[[], Iterable[Place]]


class SearchCancelled(RuntimeError):
    pass


def _run_task(
    task: FetchTask, index: int, label: str, cancel_event: Optional[threading.Event]
) -> List[Place]:
    if cancel_event is not None and cancel_event.is_set():
        return []
    try:
        result = task()
    except Exception as exc:
        logger.warning("%s task %s failed: %s", label, index, exc)
        return []
    return list(result or [])


def fetch_all(
    tasks: Sequence[FetchTask],
    max_workers: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
    label: str = "fetch",
) -> List[List[Place]]:
    """Run tasks concurrently and return their batches in submission order.

    Raises SearchCancelled if cancel_event is set before all tasks finish.
    Queued tasks are dropped; running ones finish before this returns.
    """
    tasks = list(tasks)
    if not tasks:
        return []
    if cancel_event is not None and cancel_event.is_set():
        raise SearchCancelled(f"{label} cancelled before start")

    workers = max(1, min(len(tasks), max_workers or config.FANOUT_MAX_WORKERS))
    batches: List[List[Place]] = [[] for _ in tasks]
    poll = config.CANCEL_POLL_SECONDS if cancel_event is not None else None

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=label) as executor:
        futures: Dict[Future, int] = {
            executor.submit(_run_task, task, idx, label, cancel_event): idx
            for idx, task in enumerate(tasks)
        }
        pending = set(futures)
        while pending:
            done, pending = wait(pending, timeout=poll, return_when=FIRST_COMPLETED)
            for future in done:
                batches[futures[future]] = future.result()
            if pending and cancel_event is not None and cancel_event.is_set():
                for future in pending:
                    future.cancel()
                raise SearchCancelled(
                    f"{label} cancelled with {len(pending)} of {len(tasks)} tasks outstanding"
                )

    # Tasks that saw the event mid-flight returned partial batches.
    if cancel_event is not None and cancel_event.is_set():
        raise SearchCancelled(f"{label} cancelled while tasks were running")

    failed = sum(1 for batch in batches if not batch)
    logger.debug("%s: %s tasks joined, %s empty batches", label, len(tasks), failed)
    return batches
