"""A chunked byte buffer used for socket input and output."""

from __future__ import annotations

import logging
import socket
import struct
from collections import deque
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

BUFFER_CHUNK_MIN = 512
FD_MAX_READ_BYTES = 65536


@dataclass
class _Chunk:
    storage: bytearray
    read_idx: int = 0
    write_idx: int = 0

    @classmethod
    def new(cls, size: int) -> "_Chunk":
        return cls(bytearray(max(size, BUFFER_CHUNK_MIN)))

    @property
    def size(self) -> int:
        return len(self.storage)

    @property
    def data_len(self) -> int:
        return self.write_idx - self.read_idx

    @property
    def writable(self) -> int:
        return self.size - self.write_idx

    @property
    def available(self) -> int:
        return self.size - self.data_len

    def realign(self) -> None:
        if self.read_idx == 0:
            return
        length = self.data_len
        self.storage[0:length] = self.storage[self.read_idx:self.write_idx]
        self.read_idx = 0
        self.write_idx = length

    def write(self, data: bytes) -> None:
        end = self.write_idx + len(data)
        self.storage[self.write_idx:end] = data
        self.write_idx = end

    def view(self) -> memoryview:
        return memoryview(self.storage)[self.read_idx:self.write_idx]


@dataclass
class Buffer:
    """A FIFO byte buffer made of linked chunks of at least 512 bytes."""

    _chunks: deque = field(default_factory=deque, init=False, repr=False)
    _readable: int = field(default=0, init=False)

    def __init__(self) -> None:
        self._chunks = deque()
        self._readable = 0

    def __len__(self) -> int:
        return self._readable

    @property
    def chunks(self) -> int:
        """Number of chunks currently in use."""
        return len(self._chunks)

    def append(self, data: bytes) -> None:
        """Add bytes at the end of the buffer."""
        data = bytes(data)
        size = len(data)
        if not size:
            return
        if not self._chunks:
            chunk = _Chunk.new(size)
            chunk.write(data)
            self._chunks.append(chunk)
        else:
            chunk = self._chunks[-1]
            if chunk.writable >= size:
                chunk.write(data)
            elif chunk.available >= size:
                chunk.realign()
                chunk.write(data)
            else:
                head = chunk.writable
                chunk.write(data[:head])
                rest = data[head:]
                new_chunk = _Chunk.new(len(rest))
                new_chunk.write(rest)
                self._chunks.append(new_chunk)
        self._readable += size

    def prepend(self, data: bytes) -> None:
        """Insert bytes in front of the buffered data."""
        data = bytes(data)
        size = len(data)
        if not size:
            return
        if not self._chunks:
            chunk = _Chunk.new(size)
            chunk.write(data)
            self._chunks.append(chunk)
        else:
            first = self._chunks[0]
            if first.read_idx >= size:
                first.read_idx -= size
                first.storage[first.read_idx:first.read_idx + size] = data
            else:
                remain = size - first.read_idx
                new_chunk = _Chunk.new(remain)
                new_chunk.read_idx = new_chunk.size - remain
                new_chunk.write_idx = new_chunk.size
                new_chunk.storage[new_chunk.read_idx:] = data[:remain]
                rest = data[remain:]
                if rest:
                    first.read_idx -= len(rest)
                    first.storage[first.read_idx:first.read_idx + len(rest)] = rest
                self._chunks.appendleft(new_chunk)
        self._readable += size

    def _clamp(self, size: int, what: str) -> int:
        if size > self._readable:
            logger.warning("%s(): readable bytes < size", what)
            return self._readable
        return size

    def peek(self, size: int) -> bytes:
        """Return up to ``size`` bytes from the front without consuming them."""
        size = self._clamp(size, "peek")
        out = bytearray()
        for chunk in self._chunks:
            if size <= 0:
                break
            view = chunk.view()[:size]
            out += view
            size -= len(view)
        return bytes(out)

    def read(self, size: int) -> bytes:
        """Remove and return up to ``size`` bytes from the front."""
        data = self.peek(size)
        self.remove(len(data))
        return data

    def remove(self, size: int) -> None:
        """Discard up to ``size`` bytes from the front."""
        if size <= 0:
            return
        size = self._clamp(size, "remove")
        self._readable -= size
        while self._chunks and size >= self._chunks[0].data_len:
            size -= self._chunks.popleft().data_len
        if self._chunks and size:
            self._chunks[0].read_idx += size

    def _peek_int(self, fmt: str) -> int:
        width = struct.calcsize(fmt)
        data = self.peek(width)
        if len(data) < width:
            raise ValueError(f"need {width} bytes, buffer holds {len(data)}")
        return struct.unpack(fmt, data)[0]

    def _read_int(self, fmt: str) -> int:
        value = self._peek_int(fmt)
        self.remove(struct.calcsize(fmt))
        return value

    def peek16(self) -> int:
        """Big-endian unsigned 16-bit value at the front, not consumed."""
        return self._peek_int(">H")

    def peek32(self) -> int:
        """Big-endian unsigned 32-bit value at the front, not consumed."""
        return self._peek_int(">I")

    def peek64(self) -> int:
        """Big-endian unsigned 64-bit value at the front, not consumed."""
        return self._peek_int(">Q")

    def read16(self) -> int:
        """Consume a big-endian unsigned 16-bit value."""
        return self._read_int(">H")

    def read32(self) -> int:
        """Consume a big-endian unsigned 32-bit value."""
        return self._read_int(">I")

    def read64(self) -> int:
        """Consume a big-endian unsigned 64-bit value."""
        return self._read_int(">Q")

    def read_fd(self, sock: socket.socket, max_bytes: int = 0) -> int:
        """Receive from ``sock`` into the buffer; 0 means the peer closed."""
        limit = FD_MAX_READ_BYTES if not max_bytes else min(max_bytes, FD_MAX_READ_BYTES)
        data = sock.recv(limit)
        self.append(data)
        return len(data)

    def write_fd(self, sock: socket.socket) -> int:
        """Send buffered bytes to ``sock`` and drop what was sent."""
        if not self._chunks:
            return 0
        sent = sock.send(self.peek(self._readable))
        self.remove(sent)
        return sent

    def debug(self) -> str:
        """Return a report of the buffer's chunks."""
        lines = [
            f"buffer {id(self):#x}: readable bytes=[{self._readable}]",
            "---------------------------------------",
            "chunks in use:",
        ]
        total = 0
        for number, chunk in enumerate(self._chunks, start=1):
            lines.append(
                f"chunk {number}: chunk size=[{chunk.size}] read_idx=[{chunk.read_idx}] "
                f"write_idx=[{chunk.write_idx}] data len=[{chunk.data_len}] "
                f"writable space=[{chunk.writable}]"
            )
            total += chunk.size
        lines.append(f"total {len(self._chunks)} chunk in use, total size=[{total}]")
        return "\n".join(lines)