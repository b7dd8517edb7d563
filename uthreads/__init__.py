"""Round-robin user-level threads built on generators, with a ready queue and a demo."""

__version__ = "0.1.0"

__all__ = ["ready_queue", "scheduler", "demo"]