"""In-memory store of outgoing packets, with an inflight window per session."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

PUBLISH = 3
PUBREL = 6


def _time_now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(eq=False)
class SendingPacket:
    """A packet waiting to be sent or acknowledged."""

    packet_id: int
    packet_type: int
    qos: int = 0
    packet: Any = None
    store_timestamp: int = 0
    send_time: int = 0


@dataclass
class InflightSession:
    """The per-session state the store needs: the inflight window and a finish hook."""

    inflight_window_size: int
    inflight_packets: int = 0
    upstream: Any = None
    on_publish_finish: Optional[Callable[[Any, int, int], None]] = None


class MemoryMessageStore:
    """Keeps packets in order; those beyond the inflight window wait as pending."""

    def __init__(self) -> None:
        self._queue: list[SendingPacket] = []
        self._pending: Optional[SendingPacket] = None

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def queue(self) -> list:
        """The stored packets, oldest first."""
        return list(self._queue)

    @property
    def pending(self) -> Optional[SendingPacket]:
        """The first packet still waiting for room in the inflight window."""
        return self._pending

    def store_message(self, session: InflightSession, packet: SendingPacket) -> bool:
        """Store ``packet``; True if it may be sent now, False if it must wait."""
        self._queue.append(packet)
        self_send_now = session.inflight_packets < session.inflight_window_size
        if self_send_now:
            session.inflight_packets += 1
        elif self._pending is None:
            self._pending = packet
        return self_send_now

    def _index_of(self, packet: SendingPacket) -> int:
        return next(i for i, p in enumerate(self._queue) if p is packet)

    def acknowledge_and_next(self, session: InflightSession, packet_id: int,
                             packet_type: int, qos: int) -> Optional[SendingPacket]:
        """Drop the acknowledged inflight packet and return the pending one to send next."""
        valid = False
        for index, pkt in enumerate(self._queue[:session.inflight_packets]):
            if pkt.packet_id != packet_id or pkt.packet_type != packet_type:
                continue
            if packet_type == PUBLISH:
                if pkt.qos != qos:
                    continue
                if session.on_publish_finish is not None:
                    session.on_publish_finish(session.upstream, pkt.packet_id, qos)
            del self._queue[index]
            session.inflight_packets -= 1
            valid = True
            break
        if not (valid and self._pending is not None):
            return None
        promoted = self._pending
        promoted.send_time = _time_now_ms()
        after = self._index_of(promoted) + 1
        self._pending = self._queue[after] if after < len(self._queue) else None
        session.inflight_packets += 1
        return promoted