"""One-shot client connections with a shared request deadline.

Sockets are switched to non-blocking mode once connected; every operation is
retried until it completes, waiting with a selector for the time left on
the :class:`Deadline`. Interrupted system calls are retried in place.
"""

from __future__ import annotations

import errno
import logging
import os
import selectors
import socket
from contextlib import suppress
from time import monotonic
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from OpenSSL import SSL

from tinyhttp.exceptions import (
    ConnectError,
    ConnectionWriteError,
    MalformedResponse,
    Timeout,
    TLSError,
    TruncatedResponse,
)

if TYPE_CHECKING:
    from types import TracebackType

    # typing.Self requires Python 3.11
    from typing_extensions import Self

    from tinyhttp.core.tls import ClientContextFactory


logger = logging.getLogger(__name__)

_T = TypeVar("_T")

_CONNECT_IN_PROGRESS = {
    errno.EINPROGRESS,
    errno.EWOULDBLOCK,
    errno.EALREADY,
    errno.EINTR,
}

# largest plaintext record written in one TLS send
_TLS_WRITE_SIZE = 16384


class Deadline:
    """Absolute expiry shared by every hop of one logical request.

    A timeout of ``0`` or ``None`` means no deadline.
    """

    def __init__(self, timeout: float | None):
        self.timeout: float | None = timeout or None
        self.expires: float | None = (
            monotonic() + self.timeout if self.timeout is not None else None
        )

    def remaining(self, action: str = "waiting for the server") -> float | None:
        if self.expires is None:
            return None
        left = self.expires - monotonic()
        if left <= 0:
            raise Timeout(f"Timed out after {self.timeout} seconds while {action}")
        return left

    def __repr__(self) -> str:
        return f"<Deadline timeout={self.timeout}>"


def _wait_for_socket(
    sock: socket.socket, deadline: Deadline, *, readable: bool, action: str
) -> None:
    timeout = deadline.remaining(action)
    events = selectors.EVENT_READ if readable else selectors.EVENT_WRITE
    with selectors.DefaultSelector() as selector:
        selector.register(sock, events)
        ready = selector.select(timeout)
    if not ready:
        raise Timeout(f"Timed out after {deadline.timeout} seconds while {action}")


def _normalize_bind_address(
    bind_address: str | tuple[str, int] | None,
) -> tuple[str, int] | None:
    if not bind_address:
        return None
    if isinstance(bind_address, str):
        return (bind_address, 0)
    host, port = bind_address
    return (host, int(port))


def _open_socket(
    host: str,
    port: int,
    deadline: Deadline,
    bind_address: tuple[str, int] | None,
) -> socket.socket:
    try:
        infos = socket.getaddrinfo(host, port, 0, socket.SOCK_STREAM)
    except OSError as e:
        raise ConnectError(f"Could not connect to '{host}:{port}': {e}") from e

    err: OSError | None = None
    for family, socktype, proto, _, sockaddr in infos:
        sock = socket.socket(family, socktype, proto)
        try:
            if bind_address is not None:
                try:
                    sock.bind(bind_address)
                except OSError as e:
                    raise ConnectError(
                        f"Could not bind to local address '{bind_address[0]}': {e}"
                    ) from e
            sock.setblocking(False)
            _connect_socket(sock, sockaddr, deadline)
            return sock
        except OSError as e:
            sock.close()
            err = e
        except BaseException:
            sock.close()
            raise
    raise ConnectError(f"Could not connect to '{host}:{port}': {err}") from err


def _connect_socket(sock: socket.socket, sockaddr: Any, deadline: Deadline) -> None:
    code = sock.connect_ex(sockaddr)
    if code in (0, errno.EISCONN):
        return
    if code not in _CONNECT_IN_PROGRESS:
        raise OSError(code, os.strerror(code))
    _wait_for_socket(sock, deadline, readable=False, action="connecting")
    code = sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
    if code:
        raise OSError(code, os.strerror(code))


class Connection:
    """A socket, optionally TLS-wrapped, bound to one peer for one request
    attempt. Never reused; use it as a context manager so it is closed on
    every exit path."""

    def __init__(
        self,
        sock: socket.socket,
        *,
        host: str,
        port: int,
        deadline: Deadline,
        proxied: bool = False,
        read_buffer_size: int = 32768,
        max_line_size: int = 16384,
    ):
        self.sock: socket.socket = sock
        self.host: str = host
        self.port: int = port
        self.deadline: Deadline = deadline
        self.proxied: bool = proxied
        self.read_buffer_size: int = read_buffer_size
        self.max_line_size: int = max_line_size
        self.tls: SSL.Connection | None = None
        self._buffer: bytearray = bytearray()
        self._closed: bool = False

    @property
    def peer(self) -> str:
        return f"{self.host}:{self.port}"

    def __repr__(self) -> str:
        kind = "tls" if self.tls is not None else "tcp"
        return f"<{self.__class__.__name__} {kind} {self.peer}>"

    def _retry(
        self,
        operation: Callable[..., _T],
        *args: Any,
        readable: bool = True,
        action: str = "reading the response",
    ) -> _T:
        while True:
            try:
                return operation(*args)
            except InterruptedError:
                continue
            except BlockingIOError:
                _wait_for_socket(
                    self.sock, self.deadline, readable=readable, action=action
                )
            except SSL.WantReadError:
                _wait_for_socket(self.sock, self.deadline, readable=True, action=action)
            except SSL.WantWriteError:
                _wait_for_socket(
                    self.sock, self.deadline, readable=False, action=action
                )

    def start_tls(self, context_factory: ClientContextFactory, hostname: str) -> None:
        tls = context_factory.wrap(self.sock, hostname)
        try:
            self._retry(tls.do_handshake, action="negotiating TLS")
        except SSL.Error as e:
            raise TLSError(f"SSL connection to '{self.peer}' failed: {e}") from e
        context_factory.verify(tls, hostname)
        self.tls = tls

    # reading

    def recv(self, size: int) -> bytes:
        """Return up to ``size`` bytes from the network, ``b""`` at EOF"""
        if self.tls is None:
            return self._retry(self.sock.recv, size)
        try:
            return self._retry(self.tls.recv, size)
        except SSL.ZeroReturnError:
            return b""
        except SSL.SysCallError as e:
            if e.args[0] == -1:  # unexpected EOF
                return b""
            raise OSError(*e.args) from e
        except SSL.Error as e:
            raise TLSError(f"SSL read from '{self.peer}' failed: {e}") from e

    def _fill(self) -> bool:
        data = self.recv(self.read_buffer_size)
        if not data:
            return False
        self._buffer += data
        return True

    def readline(self) -> bytes:
        """Return the next line including its terminator"""
        start = 0
        while True:
            idx = self._buffer.find(b"\n", start)
            if idx >= 0:
                if idx >= self.max_line_size:
                    break
                line = bytes(self._buffer[: idx + 1])
                del self._buffer[: idx + 1]
                return line
            if len(self._buffer) > self.max_line_size:
                break
            start = len(self._buffer)
            if not self._fill():
                raise TruncatedResponse(
                    "Unexpected end of stream while looking for line"
                )
        raise MalformedResponse(
            f"Line size exceeds the maximum allowed size of {self.max_line_size}"
        )

    def read_some(self, size: int) -> bytes:
        """Return between 1 and ``size`` bytes, or ``b""`` at EOF"""
        if self._buffer:
            data = bytes(self._buffer[:size])
            del self._buffer[:size]
            return data
        return self.recv(min(size, self.read_buffer_size))

    # writing

    def _send(self, data: bytes | memoryview) -> int:
        if self.tls is None:
            return self.sock.send(data)
        return self.tls.send(data)

    def sendall(self, data: bytes) -> None:
        view = memoryview(data)
        try:
            while view:
                if self.tls is not None:
                    # a retried TLS write must pass the very same buffer
                    chunk: bytes | memoryview = bytes(view[:_TLS_WRITE_SIZE])
                else:
                    chunk = view
                sent = self._retry(
                    self._send, chunk, readable=False, action="sending the request"
                )
                view = view[sent:]
        except (OSError, SSL.Error) as e:
            raise ConnectionWriteError(
                f"Could not write to socket of '{self.peer}': {e}"
            ) from e

    # lifecycle

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.tls is not None:
            with suppress(SSL.Error, OSError):
                self.tls.shutdown()
        self.sock.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()


def connect(
    host: str,
    port: int,
    *,
    deadline: Deadline,
    tls: bool = False,
    server_hostname: str | None = None,
    context_factory: ClientContextFactory | None = None,
    bind_address: str | tuple[str, int] | None = None,
    proxied: bool = False,
    read_buffer_size: int = 32768,
    max_line_size: int = 16384,
) -> Connection:
    """Open a connection to ``host:port``, negotiating TLS when asked to."""
    sock = _open_socket(host, port, deadline, _normalize_bind_address(bind_address))
    connection = Connection(
        sock,
        host=host,
        port=port,
        deadline=deadline,
        proxied=proxied,
        read_buffer_size=read_buffer_size,
        max_line_size=max_line_size,
    )
    logger.debug("Connected to %(peer)s", {"peer": connection.peer})
    if tls:
        if context_factory is None:
            connection.close()
            raise TLSError("No TLS context factory available")
        try:
            connection.start_tls(context_factory, server_hostname or host)
        except BaseException:
            connection.close()
            raise
    return connection
