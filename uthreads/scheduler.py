"""A round-robin scheduler for cooperative user-level threads.

Threads are entry points called with no arguments. A generator function
yields to mark the end of each slice of work; every step of the scheduler
runs the current thread for one slice and then expires its quantum. A plain
function runs to completion in its first slice.
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any, Optional

from uthreads.ready_queue import ReadyQueue

MAX_THREAD_NUM = 100
MAIN_TID = 0

EntryPoint = Callable[[], Any]


class ThreadState(enum.Enum):
    UNUSED = 0
    READY = 1
    RUNNING = 2
    BLOCKED = 3
    TERMINATED = 4


class ThreadLibraryError(Exception):
    """Raised when the library is used wrongly (bad id, bad argument, ...)."""

    def __init__(self, message: str) -> None:
        super().__init__(f"thread library error: {message}")


class SchedulerFailure(RuntimeError):
    """Raised when the scheduler is left with nothing it can run."""

    def __init__(self, message: str) -> None:
        super().__init__(f"system error: {message}")


class ProcessExit(SystemExit):
    """Raised when the main thread is terminated, ending the whole program."""


class _ThreadExit(BaseException):
    """Unwinds a thread that terminated itself while running."""


@dataclass
class ThreadControlBlock:
    """Bookkeeping for one thread slot."""

    tid: int = -1
    state: ThreadState = ThreadState.UNUSED
    quantums: int = 0
    sleep_until: int = 0
    entry: Optional[EntryPoint] = None
    blocked: bool = False
    runner: Optional[Iterator[Any]] = field(default=None, repr=False)

    @property
    def alive(self) -> bool:
        return self.state not in (ThreadState.UNUSED, ThreadState.TERMINATED)

    @property
    def sleeping(self) -> bool:
        return self.sleep_until > 0


class Scheduler:
    """Thread table, ready queue and quantum accounting."""

    def __init__(self, quantum_usecs: int) -> None:
        if quantum_usecs <= 0:
            raise ThreadLibraryError("Quantum duration must be positive.")
        self._quantum_usecs = quantum_usecs
        self._table = [ThreadControlBlock() for _ in range(MAX_THREAD_NUM)]
        self._queue = ReadyQueue(MAX_THREAD_NUM)
        self._total = 1
        main = self._table[MAIN_TID]
        main.tid = MAIN_TID
        main.state = ThreadState.RUNNING
        self._current = MAIN_TID
        self._executing: Optional[int] = None

    # ----------------------------------------------------------- queries

    @property
    def current_tid(self) -> int:
        """Id of the running thread (-1 only mid-switch)."""
        return self._current

    @property
    def total_quantums(self) -> int:
        """Quantums started since initialisation, counting from 1."""
        return self._total

    @property
    def quantum_usecs(self) -> int:
        return self._quantum_usecs

    @property
    def ready_queue(self) -> tuple[int, ...]:
        """Ids waiting to run, front first."""
        return tuple(self._queue)

    def quantums(self, tid: int) -> int:
        """Number of quantums the thread ``tid`` has run."""
        return self._live(tid).quantums

    def thread(self, tid: int) -> ThreadControlBlock:
        """The control block of slot ``tid``, whatever its state."""
        self._check_tid(tid)
        return self._table[tid]

    # ---------------------------------------------------------- lifecycle

    def spawn(self, entry_point: Optional[EntryPoint]) -> int:
        """Create a thread at the back of the ready queue and return its id."""
        if entry_point is None or not callable(entry_point):
            raise ThreadLibraryError("entry_point is NULL")
        tid = next(
            (slot for slot, tcb in enumerate(self._table) if tcb.state is ThreadState.UNUSED),
            None,
        )
        if tid is None:
            raise ThreadLibraryError("exceeded max thread count")
        self._table[tid] = ThreadControlBlock(
            tid=tid, state=ThreadState.READY, entry=entry_point
        )
        self._queue.push(tid)
        return tid

    def terminate(self, tid: int) -> None:
        """End thread ``tid``; ending the main thread raises ProcessExit."""
        self._check_tid(tid)
        if tid == MAIN_TID:
            for tcb in self._table:
                if tcb.alive:
                    self._release(tcb)
            self._queue.clear()
            raise ProcessExit(0)
        tcb = self._live(tid)
        if tid == self._current:
            self._release(tcb)
            self._current = -1
            if self._executing == tid:
                raise _ThreadExit()
            self.tick()
            return
        self._queue.remove(tid)
        self._release(tcb)

    def block(self, tid: int) -> None:
        """Block ``tid`` until resumed; blocking a blocked thread does nothing."""
        tcb = self._live(tid)
        if tid == MAIN_TID:
            raise ThreadLibraryError("the main thread cannot be blocked")
        if tcb.blocked:
            return
        tcb.blocked = True
        tcb.state = ThreadState.BLOCKED
        self._queue.remove(tid)
        if tid == self._current:
            self._switch_away(tid)

    def resume(self, tid: int) -> None:
        """Move a blocked thread back to the ready queue."""
        tcb = self._live(tid)
        if not tcb.blocked:
            return
        tcb.blocked = False
        if not tcb.sleeping:
            tcb.state = ThreadState.READY
            self._queue.push(tid)

    def sleep(self, num_quantums: int) -> None:
        """Keep the running thread off the CPU for ``num_quantums`` quantums.

        Called from inside a thread, it takes effect at the thread's next yield.
        """
        tid = self._current
        if tid == MAIN_TID:
            raise ThreadLibraryError("the main thread cannot sleep")
        if tid < 0:
            raise ThreadLibraryError("no thread is running")
        if num_quantums < 0:
            raise ThreadLibraryError("number of quantums must not be negative")
        tcb = self._table[tid]
        tcb.sleep_until = self._total + num_quantums
        tcb.state = ThreadState.BLOCKED
        self._switch_away(tid)

    def reset_threads_except_main(self) -> None:
        """Forget every thread but the main one and empty the ready queue."""
        self._queue.clear()
        for tcb in self._table[1:]:
            self._close_runner(tcb)
        self._table[1:] = [ThreadControlBlock() for _ in range(MAX_THREAD_NUM - 1)]
        if self._current != MAIN_TID:
            self._current = MAIN_TID
            self._table[MAIN_TID].state = ThreadState.RUNNING

    # --------------------------------------------------------- scheduling

    def tick(self) -> None:
        """Expire the current quantum and switch to the next thread."""
        self._total += 1
        if self._current >= 0:
            current = self._table[self._current]
            if current.state is ThreadState.RUNNING:
                current.quantums += 1
        self._wake_sleepers()
        self.schedule_next()

    def schedule_next(self) -> None:
        """Preempt the running thread and start the next ready one."""
        prev = self._current
        if prev >= 0:
            tcb = self._table[prev]
            if tcb.state is ThreadState.RUNNING:
                tcb.state = ThreadState.READY
                if prev != MAIN_TID:
                    self._queue.push(prev)
        try:
            next_tid = self._queue.pop()
        except IndexError:
            if self._table[MAIN_TID].state in (ThreadState.READY, ThreadState.RUNNING):
                next_tid = MAIN_TID
            else:
                raise SchedulerFailure(
                    "schedule_next: No runnable threads (critical error)."
                ) from None
        self._current = next_tid
        self._table[next_tid].state = ThreadState.RUNNING

    def step(self) -> int:
        """Run the current thread for one slice, end its quantum, return its id."""
        tid = self._current
        if tid > MAIN_TID:
            self._run_slice(self._table[tid])
        self.tick()
        return tid

    def run(self, max_quantums: Optional[int] = None) -> int:
        """Step until ``max_quantums`` is reached, or, without a limit, until
        no spawned thread can run again. Returns the total quantum count."""
        if max_quantums is not None and max_quantums < 1:
            raise ValueError("max_quantums must be positive")
        while True:
            if max_quantums is not None:
                if self._total >= max_quantums:
                    break
            elif not self._has_pending_work():
                break
            self.step()
        return self._total

    # ------------------------------------------------------------ helpers

    def _check_tid(self, tid: int) -> None:
        if not 0 <= tid < MAX_THREAD_NUM:
            raise ThreadLibraryError(f"invalid thread id {tid}")

    def _live(self, tid: int) -> ThreadControlBlock:
        self._check_tid(tid)
        tcb = self._table[tid]
        if not tcb.alive:
            raise ThreadLibraryError(f"no thread with id {tid}")
        return tcb

    def _switch_away(self, tid: int) -> None:
        # Inside a running slice the thread's yield ends the quantum.
        if self._executing != tid:
            self.tick()

    def _close_runner(self, tcb: ThreadControlBlock) -> None:
        runner, tcb.runner = tcb.runner, None
        if runner is not None and tcb.tid != self._executing:
            close = getattr(runner, "close", None)
            if close is not None:
                close()

    def _release(self, tcb: ThreadControlBlock) -> None:
        self._close_runner(tcb)
        tcb.state = ThreadState.TERMINATED
        tcb.tid = -1
        tcb.entry = None
        tcb.quantums = 0
        tcb.sleep_until = 0
        tcb.blocked = False

    def _wake_sleepers(self) -> None:
        for tid, tcb in enumerate(self._table):
            if tcb.alive and tcb.sleeping and self._total > tcb.sleep_until:
                tcb.sleep_until = 0
                if not tcb.blocked and tcb.state is ThreadState.BLOCKED:
                    tcb.state = ThreadState.READY
                    self._queue.push(tid)

    def _has_pending_work(self) -> bool:
        return any(
            tcb.alive and (not tcb.blocked or tcb.sleeping) and not tcb.blocked
            for tcb in self._table[1:]
        )

    def _run_slice(self, tcb: ThreadControlBlock) -> None:
        tid = tcb.tid
        self._executing = tid
        try:
            finished = self._advance(tcb)
        except _ThreadExit:
            return
        finally:
            self._executing = None
        if finished and tcb.alive:
            self._release(tcb)
            if self._current == tid:
                self._current = -1

    @staticmethod
    def _advance(tcb: ThreadControlBlock) -> bool:
        """Run one slice of ``tcb``; True when the thread has finished."""
        if tcb.runner is None:
            if tcb.entry is None:
                return True
            result = tcb.entry()
            if not isinstance(result, Iterator):
                return True
            tcb.runner = result
        try:
            next(tcb.runner)
        except StopIteration:
            return True
        return False