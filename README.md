# uthreads

A small user-level thread library. A round-robin scheduler hands out
fixed-length quantums to threads that share a single Python thread of
execution.

A thread is an entry point that takes no arguments. If the entry point is a
generator function, each `yield` ends one slice of work, and every step of the
scheduler runs the current thread for one slice. A plain function runs to
completion in its first slice. The scheduler's thread table has 100 slots.
Slot 0 is the main thread. Runnable threads wait in a FIFO ready queue.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Usage

```python
from uthreads.scheduler import Scheduler

sched = Scheduler(100_000)          # quantum length in microseconds

def worker():
    for _ in range(3):
        print("tid", sched.current_tid, "total", sched.total_quantums)
        yield

tid = sched.spawn(worker)
sched.run(10)                       # step until the total quantum count reaches 10
```

`run()` without a limit keeps stepping until no spawned thread can run again.
When a generator is exhausted, its thread is terminated and its slot is
released.

### `uthreads.scheduler`

- `Scheduler(quantum_usecs)` sets up a scheduler. The main thread is running
  and the total quantum count starts at 1.
- `spawn(entry_point)` puts a new thread at the back of the ready queue and
  returns its id. The lowest free slot is used.
- `terminate(tid)` ends a thread. A thread may terminate itself from inside
  its own slice. Terminating tid 0 releases every thread and raises
  `ProcessExit`, which is a `SystemExit`.
- `block(tid)` and `resume(tid)` move a thread out of the ready queue and back
  into it. Blocking a thread that is already blocked does nothing. The main
  thread cannot be blocked.
- `sleep(num_quantums)` keeps the running thread off the CPU for that many
  quantums. Inside a thread's slice it takes effect at the thread's next
  `yield`. The main thread cannot sleep.
- Read-only properties: `current_tid`, `total_quantums`, `quantum_usecs` and
  `ready_queue` (a tuple of ids, front first).
- `quantums(tid)` gives the number of quantums a live thread has run.
  `thread(tid)` gives the `ThreadControlBlock` of a slot.
- `reset_threads_except_main()` forgets every thread except the main one.
- Scheduling is driven by `tick()`, which expires the current quantum, wakes
  sleepers and switches threads. It is also driven by `schedule_next()`,
  `step()` and `run(max_quantums)`.
- `ThreadState` lists the states a slot can be in: `UNUSED`, `READY`,
  `RUNNING`, `BLOCKED` and `TERMINATED`.

### `uthreads.ready_queue`

`ReadyQueue(capacity=100)` is a bounded FIFO of thread ids. It provides
`push`, `pop`, `remove`, `clear` and `is_empty`, and it supports `len()`,
iteration and `in`. Pushing onto a full queue raises `QueueOverflowError`.
Popping an empty queue raises `IndexError`.

### Errors

`ThreadLibraryError` is raised for invalid requests. Examples:

- a non-positive quantum;
- a tid that is out of range or not alive;
- an entry point that is `None` or not callable;
- blocking the main thread, or sleeping in it;
- spawning beyond 100 threads.

`SchedulerFailure` is raised when nothing is left to run.

## Demo

```
uthreads-demo [--quantum USECS] [--iterations N]
```

The demo starts four workers next to the main thread:

- a counter;
- a thread that sleeps for 3 quantums and then counts;
- a thread that sleeps for 2 quantums after every 4th iteration;
- a second counter.

Each status line shows the iteration, the total quantum count and the thread's
own quantum count. After `N` main-thread iterations (499 by default) the main
thread terminates the workers and then itself.

The same run is available from code as `uthreads.demo.run_demo()`. The workers
are also available on their own: `counting_worker`, `sleeping_worker` and
`periodic_sleeper`.

## What it does not do

Scheduling is cooperative. No timer or signal interrupts a thread, and a
thread gives up the CPU only when it yields, returns, sleeps, blocks or
terminates itself. The quantum length is stored and reported, but the
scheduler does not measure or enforce it in real time.