"""A fixed-size pool of worker threads fed from a message queue.

A task may schedule further tasks, and may even destroy the pool it runs
in: the destroying thread then finishes its task and exits.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from tinymqtt.msgqueue import MessageQueue

logger = logging.getLogger(__name__)

_stack_size_lock = threading.Lock()


@dataclass(frozen=True)
class Task:
    """A routine and the context it is called with."""

    routine: Callable[[Any], None]
    context: Any = None

    def run(self) -> None:
        self.routine(self.context)


class ThreadPool:
    """Worker threads that run scheduled tasks in FIFO order."""

    def __init__(self, nthreads: int, stacksize: int = 0) -> None:
        if nthreads < 0:
            raise ValueError("nthreads must not be negative")
        self._queue = MessageQueue(0)
        self._stacksize = stacksize
        self._lock = threading.Lock()
        self._all_exited = threading.Condition(self._lock)
        self._local = threading.local()
        self._threads: list[threading.Thread] = []
        self._nthreads = 0
        self._terminating = False
        try:
            with self._lock:
                while self._nthreads < nthreads:
                    self._start_thread()
        except BaseException:
            self._terminate(False)
            raise

    @property
    def nthreads(self) -> int:
        """Number of worker threads still running tasks."""
        return self._nthreads

    def __enter__(self) -> "ThreadPool":
        return self

    def __exit__(self, *exc_info) -> None:
        self.destroy(None)

    def _start_thread(self) -> None:
        thread = threading.Thread(target=self._worker, daemon=True)
        if self._stacksize:
            with _stack_size_lock:
                previous = threading.stack_size(self._stacksize)
                try:
                    thread.start()
                finally:
                    threading.stack_size(previous)
        else:
            thread.start()
        self._threads.append(thread)
        self._nthreads += 1

    def _worker(self) -> None:
        self._local.in_pool = True
        while not self._terminating:
            task = self._queue.get()
            if task is None:
                break
            try:
                task.run()
            except Exception:
                logger.exception("thread pool task raised")
            if getattr(self._local, "destroyed", False):
                return
        with self._lock:
            self._nthreads -= 1
            if self._nthreads == 0:
                self._all_exited.notify()

    def _terminate(self, in_pool: bool) -> None:
        with self._lock:
            self._queue.set_nonblock()
            self._terminating = True
            if in_pool:
                self._local.destroyed = True
                self._nthreads -= 1
            while self._nthreads > 0:
                self._all_exited.wait()
            threads = list(self._threads)
        current = threading.current_thread()
        for thread in threads:
            if thread is not current:
                thread.join()

    def schedule(self, routine: Callable[[Any], None], context: Any = None) -> None:
        """Queue ``routine(context)`` to run on a worker thread."""
        self._queue.put(Task(routine, context))

    def increase(self) -> None:
        """Add one worker thread."""
        with self._lock:
            self._start_thread()

    def in_pool(self) -> bool:
        """Whether the calling thread is one of this pool's workers."""
        return getattr(self._local, "in_pool", False)

    def destroy(self, pending: Optional[Callable[[Task], None]] = None) -> None:
        """Stop the workers; tasks that never ran are passed to ``pending``."""
        self._terminate(self.in_pool())
        while (task := self._queue.get()) is not None:
            if pending is not None:
                pending(task)