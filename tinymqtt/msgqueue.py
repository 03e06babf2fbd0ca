"""A two-list message queue for producer/consumer hand-off between threads.

Consumers take messages from a private "get" list. When it runs dry, one
consumer waits until producers have put something on the "put" list and
swaps the two lists. This keeps contention low when the queue is busy.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Any


class MessageQueue:
    """A thread-safe FIFO queue with a blocking and a non-blocking mode.

    In blocking mode ``put`` waits while ``maxlen`` messages are pending on
    the put side, so up to twice ``maxlen`` messages may be pending in
    total. A ``maxlen`` of 0 means no limit. In non-blocking mode neither
    ``put`` nor ``get`` waits, and ``get`` returns None when the queue is
    empty.
    """

    def __init__(self, maxlen: int = 0) -> None:
        if maxlen < 0:
            raise ValueError("maxlen must not be negative")
        self._maxlen = maxlen
        self._get_list: deque = deque()
        self._put_list: deque = deque()
        self._nonblock = False
        self._get_lock = threading.Lock()
        self._put_lock = threading.Lock()
        self._get_cond = threading.Condition(self._put_lock)
        self._put_cond = threading.Condition(self._put_lock)

    @property
    def nonblocking(self) -> bool:
        """Whether the queue is in non-blocking mode."""
        return self._nonblock

    def _put_side_full(self) -> bool:
        return self._maxlen > 0 and len(self._put_list) >= self._maxlen

    def set_nonblock(self) -> None:
        """Switch to non-blocking mode and wake any waiting callers."""
        self._nonblock = True
        with self._put_lock:
            self._get_cond.notify()
            self._put_cond.notify_all()

    def set_block(self) -> None:
        """Switch back to blocking mode."""
        self._nonblock = False

    def _swap(self) -> int:
        with self._put_lock:
            while not self._put_list and not self._nonblock:
                self._get_cond.wait()
            count = len(self._put_list)
            if self._put_side_full():
                self._put_cond.notify_all()
            self._get_list, self._put_list = self._put_list, self._get_list
        return count

    def put(self, msg: Any) -> None:
        """Add a message, waiting for room when the queue is full and blocking."""
        if msg is None:
            raise ValueError("None cannot be queued")
        with self._put_lock:
            while self._put_side_full() and not self._nonblock:
                self._put_cond.wait()
            self._put_list.append(msg)
            self._get_cond.notify()

    def get(self) -> Any:
        """Take the oldest message.

        Waits for one in blocking mode; returns None if the queue is empty
        in non-blocking mode.
        """
        with self._get_lock:
            if self._get_list or self._swap() > 0:
                return self._get_list.popleft()
            return None