"""Socket helpers for TCP and local (Unix domain) stream sockets."""

from __future__ import annotations

import errno
import os
import socket
from dataclasses import dataclass

LISTEN_BACKLOG = 32768
_UNIX_PATH_MAX = 107


@dataclass(frozen=True)
class SocketAddress:
    """An IPv4 address and port."""

    host: str = "0.0.0.0"
    port: int = 0

    def is_valid(self) -> bool:
        return not (self.host == "0.0.0.0" and self.port == 0)

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


def addr_from_ip_port(ip: str | None, port: int) -> SocketAddress:
    """Build an address from a dotted IPv4 string; no ip gives an empty address."""
    if ip is None:
        return SocketAddress()
    try:
        host = socket.inet_ntop(socket.AF_INET, socket.inet_pton(socket.AF_INET, ip))
    except OSError:
        host = "0.0.0.0"
    return SocketAddress(host, port)


def addr_from_port(port: int, loopback: bool) -> SocketAddress:
    """Loopback or wildcard address with the given port."""
    return SocketAddress("127.0.0.1" if loopback else "0.0.0.0", port)


def _stream_socket(family: int, nonblock: bool) -> socket.socket:
    sock = socket.socket(family, socket.SOCK_STREAM)
    sock.setblocking(not nonblock)
    return sock


def tcp_socket(nonblock: bool) -> socket.socket:
    """A new IPv4 stream socket, close-on-exec."""
    return _stream_socket(socket.AF_INET, nonblock)


def unix_socket(nonblock: bool) -> socket.socket:
    """A new local stream socket, close-on-exec."""
    return _stream_socket(socket.AF_UNIX, nonblock)


def set_nonblocking(sock: socket.socket) -> None:
    sock.setblocking(False)


def _set_flag(sock: socket.socket, level: int, option: int, enable) -> None:
    if enable not in (0, 1):
        raise ValueError("enable must be 0 or 1")
    sock.setsockopt(level, option, int(enable))


def set_reuse_addr(sock: socket.socket, enable) -> None:
    _set_flag(sock, socket.SOL_SOCKET, socket.SO_REUSEADDR, enable)


def set_reuse_port(sock: socket.socket, enable) -> None:
    _set_flag(sock, socket.SOL_SOCKET, socket.SO_REUSEPORT, enable)


def set_keepalive(sock: socket.socket, enable) -> None:
    _set_flag(sock, socket.SOL_SOCKET, socket.SO_KEEPALIVE, enable)


def set_tcp_no_delay(sock: socket.socket, enable) -> None:
    _set_flag(sock, socket.IPPROTO_TCP, socket.TCP_NODELAY, enable)


def _to_address(name):
    if isinstance(name, tuple):
        return SocketAddress(name[0], name[1])
    return name


def local_addr(sock: socket.socket):
    """The socket's own address: a SocketAddress, or a path for local sockets."""
    return _to_address(sock.getsockname())


def peer_addr(sock: socket.socket):
    """The connected peer's address."""
    return _to_address(sock.getpeername())


def bind(sock: socket.socket, ip: str | None, port: int) -> None:
    """Bind to ``ip``, or to the wildcard address when no ip is given."""
    addr = addr_from_ip_port(ip, port) if ip else addr_from_port(port, False)
    sock.bind((addr.host, addr.port))


def _unix_path(path: str) -> bytes:
    return os.fsencode(path)[:_UNIX_PATH_MAX]


def unix_bind(sock: socket.socket, path: str) -> None:
    """Bind a local socket to ``path``, replacing any file already there."""
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    sock.bind(_unix_path(path))


def listen(sock: socket.socket) -> None:
    sock.listen(LISTEN_BACKLOG)


def accept(sock: socket.socket):
    """Accept a connection; the new socket is non-blocking.

    Returns the connection and the peer address. Transient failures
    (EAGAIN, ECONNABORTED, EINTR, EPROTO, EPERM, EMFILE) raise OSError
    with that errno, as does anything else.
    """
    conn, name = sock.accept()
    conn.setblocking(False)
    return conn, _to_address(name)


def connect(sock: socket.socket, addr: SocketAddress) -> int:
    """Start a connection; returns 0 or the errno value."""
    return sock.connect_ex((addr.host, addr.port))


def unix_connect(sock: socket.socket, path: str) -> int:
    """Connect a local socket; returns 0 or the errno value."""
    return sock.connect_ex(_unix_path(path))


def shutdown_write(sock: socket.socket) -> None:
    sock.shutdown(socket.SHUT_WR)


def get_error(sock: socket.socket) -> int:
    """The pending socket error, 0 when there is none."""
    try:
        return sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
    except OSError as exc:
        return exc.errno or errno.EBADF