"""Probers: one synchronous health check against a target.

Supports: raw TCP (auth + echo handshake) and HTTPS (GET + body marker).
Expected failures never raise; they come back as ``ProbeResult(ok=False)``
with a diagnostic message that is only ever logged.

The configured timeout bounds the whole probe, not each socket operation:
every step gets whatever is left of a single deadline.
"""

from __future__ import annotations

import logging
import socket
import time
from dataclasses import dataclass
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)

DEFAULT_MARKER = "CLOUDWALK"
_READ_SIZE = 1024
# Longest first line the HTTP prober will buffer while looking for the marker.
_MAX_LINE = 4096


# ── Models ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Target:
    host: str
    port: int

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass
class ProbeResult:
    """Outcome of a single probe. ``message`` is diagnostic only."""

    ok: bool
    message: str = ""
    latency_ms: float = 0.0


class Prober(Protocol):
    name: str

    def check(self, target: Target) -> ProbeResult: ...


def _elapsed_ms(t0: float) -> float:
    return round((time.perf_counter() - t0) * 1000, 1)


def _remaining(deadline: float) -> float:
    """Seconds left before ``deadline``; raises ``TimeoutError`` once it has passed."""
    left = deadline - time.perf_counter()
    if left <= 0:
        raise TimeoutError("probe deadline exceeded")
    return left


# ── TCP ──────────────────────────────────────────────────────────────────────


class TcpProber:
    """Authenticates on the raw TCP protocol and checks the echo reply."""

    name = "tcp"

    def __init__(self, auth_token: str, timeout: float, marker: str = DEFAULT_MARKER) -> None:
        self.auth_token = auth_token
        self.timeout = timeout
        self.marker = marker

    def check(self, target: Target) -> ProbeResult:
        t0 = time.perf_counter()
        deadline = t0 + self.timeout

        # getaddrinfo cannot be interrupted; a slow lookup still fails on the
        # deadline check before connecting.
        try:
            addr = socket.getaddrinfo(target.host, target.port, type=socket.SOCK_STREAM)[0][4]
        except (socket.gaierror, UnicodeError, OverflowError) as e:
            return self._fail(t0, f"Wrong address: {e}")

        try:
            sock = socket.create_connection(addr[:2], timeout=_remaining(deadline))
        except OSError as e:
            return self._fail(t0, f"Service offline: {e}")

        with sock:
            try:
                sock.settimeout(_remaining(deadline))
                sock.sendall(f"auth {self.auth_token}".encode())
            except OSError as e:
                return self._fail(t0, f"Write authentication failure: {e}")
            try:
                sock.settimeout(_remaining(deadline))
                auth_reply = sock.recv(_READ_SIZE)
            except OSError as e:
                return self._fail(t0, f"Reads message error: {e}")
            if b"ok" not in auth_reply:
                return self._fail(t0, f"Authentication rejected: {auth_reply[:80]!r}")

            try:
                sock.settimeout(_remaining(deadline))
                sock.sendall(b"Testing")
            except OSError as e:
                return self._fail(t0, f"Write test message failure: {e}")
            try:
                sock.settimeout(_remaining(deadline))
                test_reply = sock.recv(_READ_SIZE)
            except OSError as e:
                return self._fail(t0, f"Reads message error: {e}")

        if time.perf_counter() > deadline:
            return self._fail(t0, f"Timeout: no echo within {self.timeout}s")
        if self.marker.encode() not in test_reply:
            return self._fail(t0, f"Unexpected echo: {test_reply[:80]!r}")
        return ProbeResult(ok=True, message="Echo OK", latency_ms=_elapsed_ms(t0))

    def _fail(self, t0: float, message: str) -> ProbeResult:
        logger.warning("TCP: %s", message)
        return ProbeResult(ok=False, message=message, latency_ms=_elapsed_ms(t0))


# ── HTTP ─────────────────────────────────────────────────────────────────────


def _first_line(resp: httpx.Response, deadline: float) -> str:
    """Read the streamed body until its first newline, checking ``deadline`` per chunk."""
    buf = ""
    for chunk in resp.iter_text():
        _remaining(deadline)
        buf += chunk
        if "\n" in buf or len(buf) >= _MAX_LINE:
            break
    return buf.split("\n", 1)[0][:_MAX_LINE]


class HttpProber:
    """GETs the HTTPS endpoint and expects the marker on the first body line."""

    name = "http"

    def __init__(
        self,
        auth_token: str,
        timeout: float,
        marker: str = DEFAULT_MARKER,
        scheme: str = "https",
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.auth_token = auth_token
        self.timeout = timeout
        self.marker = marker
        self.scheme = scheme
        self._transport = transport

    def url_for(self, target: Target) -> str:
        return f"{self.scheme}://{target.host}:{target.port}/"

    def check(self, target: Target) -> ProbeResult:
        t0 = time.perf_counter()
        deadline = t0 + self.timeout
        params = {"auth": self.auth_token, "buf": "testing"}
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                with client.stream("GET", self.url_for(target), params=params) as resp:
                    if resp.status_code != 200:
                        return self._fail(t0, f"Unexpected response status: {resp.status_code}")
                    first_line = _first_line(resp, deadline)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return self._fail(t0, f"HTTP GET request error: {type(e).__name__}: {e}")
        except TimeoutError:
            return self._fail(t0, f"Timeout: no response within {self.timeout}s")

        if time.perf_counter() > deadline:
            return self._fail(t0, f"Timeout: no response within {self.timeout}s")
        if self.marker not in first_line:
            return self._fail(t0, f"Unexpected response message: {first_line[:80]!r}")
        return ProbeResult(ok=True, message=f"{resp.status_code} OK", latency_ms=_elapsed_ms(t0))

    def _fail(self, t0: float, message: str) -> ProbeResult:
        logger.warning("HTTP: %s", message)
        return ProbeResult(ok=False, message=message, latency_ms=_elapsed_ms(t0))
