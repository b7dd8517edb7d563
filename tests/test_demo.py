import io
import re

import pytest

from uthreads.demo import (
    counting_worker,
    main,
    periodic_sleeper,
    run_demo,
    sleeping_worker,
)
from uthreads.scheduler import Scheduler, ThreadLibraryError, ThreadState

STATUS = re.compile(r"Total quantums: (\d+), My quantums: (\d+)")


def _collecting(factory, sink):
    def entry():
        for line in factory():
            sink.append(line)
            yield

    return entry


def test_counting_worker_reports_each_iteration_and_terminates():
    scheduler = Scheduler(1000)
    lines = []
    tid = scheduler.spawn(
        _collecting(lambda: counting_worker(scheduler, "T", 3), lines)
    )
    scheduler.run()
    assert [line.split(".")[0] for line in lines] == [
        "[T] Running, iteration 1",
        "[T] Running, iteration 2",
        "[T] Running, iteration 3",
    ]
    assert scheduler.thread(tid).state is ThreadState.TERMINATED


def test_two_workers_interleave_round_robin():
    scheduler = Scheduler(1000)
    lines = []
    scheduler.spawn(_collecting(lambda: counting_worker(scheduler, "A", 5), lines))
    scheduler.spawn(_collecting(lambda: counting_worker(scheduler, "B", 5), lines))
    scheduler.run()
    labels = [line[:3] for line in lines]
    assert labels == ["[A]", "[B]"] * 5
    assert scheduler.ready_queue == ()


def test_counting_worker_quantum_counts_grow():
    scheduler = Scheduler(1000)
    lines = []
    scheduler.spawn(_collecting(lambda: counting_worker(scheduler, "C", 6), lines))
    scheduler.run()
    pairs = [tuple(map(int, STATUS.search(line).groups())) for line in lines]
    totals = [total for total, _ in pairs]
    mine = [own for _, own in pairs]
    assert all(a < b for a, b in zip(totals, totals[1:]))
    assert all(a <= b for a, b in zip(mine, mine[1:]))
    assert all(own <= total for total, own in pairs)


def test_sleeping_worker_alone_wakes_and_counts():
    scheduler = Scheduler(1000)
    lines = []
    tid = scheduler.spawn(
        _collecting(lambda: sleeping_worker(scheduler, "S", 2, 2), lines)
    )
    scheduler.run()
    assert lines[0] == "[S] Started. Sleeping for 2 quantums..."
    assert lines[1] == "[S] Woke up from sleep. Continuing execution..."
    assert [line.split(".")[0] for line in lines[2:]] == [
        "[S] Running, iteration 1",
        "[S] Running, iteration 2",
    ]
    assert scheduler.thread(tid).state is ThreadState.TERMINATED


def test_sleeping_worker_lets_others_run_while_asleep():
    scheduler = Scheduler(1000)
    lines = []
    scheduler.spawn(_collecting(lambda: sleeping_worker(scheduler, "S", 1, 3), lines))
    scheduler.spawn(_collecting(lambda: counting_worker(scheduler, "O", 10), lines))
    scheduler.run()
    start = lines.index("[S] Started. Sleeping for 3 quantums...")
    woke = lines.index("[S] Woke up from sleep. Continuing execution...")
    between = lines[start + 1 : woke]
    assert len(between) >= 3
    assert all(line.startswith("[O]") for line in between)


def test_periodic_sleeper_sleeps_every_nth_iteration():
    scheduler = Scheduler(1000)
    lines = []
    scheduler.spawn(
        _collecting(lambda: periodic_sleeper(scheduler, "P", 4, 2, 1), lines)
    )
    scheduler.run()
    assert lines.count("[P] Sleeping for 1 quantums...") == 2
    assert lines.count("[P] Woke up from sleep.") == 2
    sleep_at = lines.index("[P] Sleeping for 1 quantums...")
    assert lines[sleep_at - 1].startswith("[P] Running, iteration 2.")


def test_periodic_sleeper_rejects_non_positive_period():
    with pytest.raises(ValueError):
        periodic_sleeper(Scheduler(1000), "P", 4, 0, 1)


def test_counting_worker_rejects_negative_iterations():
    with pytest.raises(ValueError):
        counting_worker(Scheduler(1000), "T", -1)


def test_sleeping_worker_cannot_run_on_main_thread():
    scheduler = Scheduler(1000)
    worker = sleeping_worker(scheduler, "S", 1, 1)
    with pytest.raises(ThreadLibraryError):
        next(worker)
    assert scheduler.current_tid == 0
    assert scheduler.thread(0).state is ThreadState.RUNNING
    assert scheduler.ready_queue == ()


def test_run_demo_output_and_shutdown():
    out = io.StringIO()
    scheduler = run_demo(1000, 10, out)
    lines = out.getvalue().splitlines()
    assert lines[-3:] == [
        "[Main Thread] Shutting down user-level threads",
        "[Main Thread] Shutdown succeeded",
        "[Main Thread] Terminating Main Thread",
    ]
    main_lines = [line for line in lines if line.startswith("[Main Thread] Running")]
    assert [line.split(".")[0] for line in main_lines] == [
        f"[Main Thread] Running, iteration {n}" for n in range(1, 11)
    ]
    assert "[Thread 2] Started. Sleeping for 3 quantums..." in lines
    assert any(line.startswith("[Thread 1] Running, iteration 1.") for line in lines)
    for tid in range(5):
        assert scheduler.thread(tid).state is ThreadState.TERMINATED


def test_run_demo_rejects_bad_quantum():
    with pytest.raises(ThreadLibraryError):
        run_demo(0, 1, io.StringIO())


def test_main_runs_demo(capsys):
    assert main(["--quantum", "1000", "--iterations", "3"]) == 0
    captured = capsys.readouterr()
    assert "[Main Thread] Shutdown succeeded" in captured.out


def test_main_reports_invalid_quantum(capsys):
    assert main(["--quantum", "0", "--iterations", "1"]) == 1
    captured = capsys.readouterr()
    assert "Quantum duration must be positive." in captured.err