"""Demonstration workloads that share the CPU through a Scheduler.

Each worker is a generator of status lines. Every line it yields closes one
slice of work, so when the generator runs as a scheduled thread each line
marks the end of a quantum.
"""

from __future__ import annotations

import argparse
import contextlib
import functools
import itertools
import sys
from collections.abc import Iterable, Iterator
from typing import Optional, TextIO

from uthreads.scheduler import MAIN_TID, ProcessExit, Scheduler, ThreadLibraryError

DEFAULT_QUANTUM_USECS = 100_000
DEFAULT_MAIN_ITERATIONS = 499


def _counter(iterations: Optional[int]) -> Iterator[int]:
    if iterations is None:
        return itertools.count(1)
    if iterations < 0:
        raise ValueError("iterations must not be negative")
    return iter(range(1, iterations + 1))


def _check_sleep(sleep_quantums: int) -> None:
    if sleep_quantums < 0:
        raise ValueError("sleep_quantums must not be negative")


def _status(scheduler: Scheduler, label: str, counter: int) -> str:
    tid = scheduler.current_tid
    return (
        f"[{label}] Running, iteration {counter}. "
        f"Total quantums: {scheduler.total_quantums}, "
        f"My quantums: {scheduler.quantums(tid)}"
    )


def _finish(scheduler: Scheduler) -> None:
    scheduler.terminate(scheduler.current_tid)


def counting_worker(
    scheduler: Scheduler, label: str, iterations: Optional[int] = None
) -> Iterator[str]:
    """Report status once per slice, then terminate the calling thread.

    With ``iterations`` of None the worker never stops on its own.
    """
    counters = _counter(iterations)

    def body() -> Iterator[str]:
        for counter in counters:
            yield _status(scheduler, label, counter)
        _finish(scheduler)

    return body()


def sleeping_worker(
    scheduler: Scheduler,
    label: str,
    iterations: Optional[int] = None,
    sleep_quantums: int = 3,
) -> Iterator[str]:
    """Sleep for ``sleep_quantums`` quantums first, then count like counting_worker."""
    _check_sleep(sleep_quantums)
    counters = _counter(iterations)

    def body() -> Iterator[str]:
        scheduler.sleep(sleep_quantums)
        yield f"[{label}] Started. Sleeping for {sleep_quantums} quantums..."
        yield f"[{label}] Woke up from sleep. Continuing execution..."
        for counter in counters:
            yield _status(scheduler, label, counter)
        _finish(scheduler)

    return body()


def periodic_sleeper(
    scheduler: Scheduler,
    label: str,
    iterations: Optional[int] = None,
    every: int = 4,
    sleep_quantums: int = 2,
) -> Iterator[str]:
    """Count, sleeping for ``sleep_quantums`` after every ``every``-th iteration."""
    if every <= 0:
        raise ValueError("every must be positive")
    _check_sleep(sleep_quantums)
    counters = _counter(iterations)

    def body() -> Iterator[str]:
        for counter in counters:
            yield _status(scheduler, label, counter)
            if counter % every == 0:
                scheduler.sleep(sleep_quantums)
                yield f"[{label}] Sleeping for {sleep_quantums} quantums..."
                yield f"[{label}] Woke up from sleep."
        _finish(scheduler)

    return body()


def _echo(lines: Iterable[str], out: TextIO) -> Iterator[None]:
    for line in lines:
        print(line, file=out)
        yield


def run_demo(
    quantum_usecs: int = DEFAULT_QUANTUM_USECS,
    main_iterations: int = DEFAULT_MAIN_ITERATIONS,
    out: Optional[TextIO] = None,
) -> Scheduler:
    """Run four workers beside the main thread, then shut everything down.

    Returns the scheduler after the main thread has terminated.
    """
    if main_iterations < 0:
        raise ValueError("main_iterations must not be negative")
    out = sys.stdout if out is None else out
    scheduler = Scheduler(quantum_usecs)

    workloads = [
        counting_worker(scheduler, "Thread 1"),
        sleeping_worker(scheduler, "Thread 2", None, 3),
        periodic_sleeper(scheduler, "Thread 3", None, 4, 2),
        counting_worker(scheduler, "Thread 4"),
    ]
    tids: list[Optional[int]] = []
    for number, lines in enumerate(workloads, start=1):
        try:
            tids.append(scheduler.spawn(functools.partial(_echo, lines, out)))
        except ThreadLibraryError:
            print(f"Failed to spawn thread {number}", file=sys.stderr)
            tids.append(None)

    for counter in range(1, main_iterations + 1):
        scheduler.step()
        print(
            f"[Main Thread] Running, iteration {counter}. "
            f"Total quantums: {scheduler.total_quantums}, "
            f"My quantums: {scheduler.quantums(MAIN_TID)}",
            file=out,
        )

    print("[Main Thread] Shutting down user-level threads", file=out)
    for tid in tids:
        if tid is None:
            continue
        with contextlib.suppress(ThreadLibraryError):
            scheduler.terminate(tid)
    print("[Main Thread] Shutdown succeeded", file=out)
    print("[Main Thread] Terminating Main Thread", file=out)
    with contextlib.suppress(ProcessExit):
        scheduler.terminate(MAIN_TID)
    return scheduler


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="uthreads-demo",
        description="Run a round-robin demonstration of user-level threads.",
    )
    parser.add_argument(
        "--quantum",
        type=int,
        default=DEFAULT_QUANTUM_USECS,
        help="quantum length in microseconds",
    )
    parser.add_argument(
        "--iterations",
        type=int,
        default=DEFAULT_MAIN_ITERATIONS,
        help="iterations of the main thread before shutdown",
    )
    args = parser.parse_args(argv)
    try:
        run_demo(args.quantum, args.iterations)
    except (ThreadLibraryError, ValueError) as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())