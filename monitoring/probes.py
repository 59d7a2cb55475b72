"""
============================================================================
AREWEUP - PROTOCOL PROBES
============================================================================
One probe per protocol. Each takes a resolved ``EndpointRequest`` and
returns a ``ProbeOutcome``; network-level problems never escape a probe,
they become failing outcomes with an explanatory message.

Architecture
------------
ProbeRouter               ← picks the probe for a request's protocol
├── HTTPProbe             ← HTTP and HTTPS via httpx, shared cookie jar
├── TCPProbe              ← connect raced against the request timeout
├── UDPProbe              ← datagram exchange + socket error heuristics
└── ICMPProbe             ← one echo request via the system ping

Only contract violations (no request, a request for another protocol)
raise to the caller.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import asyncio
import ipaddress
import re
import socket
import ssl
import time
from typing import Dict, Iterable, List, Optional, Tuple

import dns.asyncresolver
import dns.exception
import httpx

from config.constants import (
    Defaults, HTTPMethods, Protocol, UdpErrorKind, UdpErrorTables
)
from exceptions import ProbeTransportError
from monitoring.models import EndpointRequest, ProbeOutcome, WebOptions
from utils.logger import get_logger
from utils.validators import DataValidator


logger = get_logger("Probes")


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 3)


def _require(request: Optional[EndpointRequest], *protocols: Protocol) -> EndpointRequest:
    """Reject contract violations before any I/O happens."""
    if request is None:
        raise ValueError("request must not be None")
    if not isinstance(request, EndpointRequest):
        raise TypeError(f"expected an EndpointRequest, got {type(request).__name__}")
    if request.protocol not in protocols:
        names = "/".join(p.value for p in protocols)
        raise ValueError(f"{names} probe cannot run a {request.protocol.value} request")
    return request


def _port_error(request: EndpointRequest) -> Optional[ProbeOutcome]:
    """A TCP/UDP request that resolved with an unusable port never touches the network."""
    if DataValidator.is_valid_port(request.port):
        return None
    return ProbeOutcome.down(
        f"{request.protocol.value} check for {request.target} has a configuration error: "
        f"port {request.port} is not a valid port number"
    )


# ============================================================================
# TCP PROBE
# ============================================================================

class TCPProbe:
    """
    Opens a TCP connection to host:port and closes it again.

    The connect is raced against ``timeout_millis``; when the timer wins
    the pending connect is cancelled and the endpoint is reported down.
    """

    async def probe(self, request: EndpointRequest) -> ProbeOutcome:
        request = _require(request, Protocol.TCP)

        config_error = _port_error(request)
        if config_error is not None:
            return config_error

        host, port = request.target, request.port
        timeout = request.timeout_millis / 1000
        start_time = time.perf_counter()

        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port),
                timeout=timeout
            )
        except asyncio.TimeoutError:
            logger.debug(f"[TCP] {host}:{port} → timed out after {request.timeout_millis} ms")
            return ProbeOutcome.down(
                f"TCP {host}:{port} is down: no connection within {request.timeout_millis} ms"
            )
        except OSError as e:
            logger.debug(f"[TCP] {host}:{port} → {e}")
            return ProbeOutcome.down(
                f"TCP {host}:{port} is down: {e.strerror or e}"
            )

        elapsed = _elapsed_ms(start_time)

        # We only care about connectivity
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            logger.debug(f"[TCP] {host}:{port} → error while closing: {e}")

        logger.debug(f"[TCP] {host}:{port} → connected in {elapsed:.1f} ms")
        return ProbeOutcome.up(f"TCP {host}:{port} is up ({elapsed:.0f} ms latency)", elapsed)


# ============================================================================
# UDP PROBE
# ============================================================================

def classify_udp_error(error: BaseException) -> UdpErrorKind:
    """
    Map a UDP send/receive failure onto one of the error kinds.

    Parameters
    ----------
    error : BaseException
        What the exchange raised (or what the timer produced).

    Returns
    -------
    UdpErrorKind
        ``OTHER`` when the error matches no known kind.
    """
    if isinstance(error, (asyncio.TimeoutError, socket.timeout)):
        return UdpErrorKind.TIMED_OUT

    if isinstance(error, OSError) and error.errno in UdpErrorTables.ERRNO_KINDS:
        return UdpErrorTables.ERRNO_KINDS[error.errno]

    if isinstance(error, ConnectionResetError):
        return UdpErrorKind.CONNECTION_RESET
    if isinstance(error, ConnectionRefusedError):
        return UdpErrorKind.CONNECTION_REFUSED
    if isinstance(error, PermissionError):
        return UdpErrorKind.ACCESS_DENIED
    if isinstance(error, BlockingIOError):
        return UdpErrorKind.IO_PENDING

    return UdpErrorKind.OTHER


class _DatagramReceiver(asyncio.DatagramProtocol):
    """Resolves ``reply`` with the first datagram or the first socket error."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self.reply: asyncio.Future = loop.create_future()

    def datagram_received(self, data: bytes, addr) -> None:
        if not self.reply.done():
            self.reply.set_result(data)

    def error_received(self, exc: Exception) -> None:
        if not self.reply.done():
            self.reply.set_exception(exc)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if not self.reply.done():
            if exc is not None:
                self.reply.set_exception(exc)
            else:
                self.reply.cancel()


class UDPProbe:
    """
    Sends one datagram and waits for a reply.

    UDP has no handshake, so silence proves nothing. The socket error
    (if any) decides the verdict:

    * a reply of at least one byte → up
    * an empty reply → down, warning
    * reset / timed-out / already-connected / io-pending → presumed up
    * refused / access-denied → down, warning (the port rejected us)
    * anything else → down, error
    """

    async def probe(self, request: EndpointRequest) -> ProbeOutcome:
        request = _require(request, Protocol.UDP)

        config_error = _port_error(request)
        if config_error is not None:
            return config_error

        host, port = request.target, request.port
        timeout = request.timeout_millis / 1000
        options = request.udp

        loop = asyncio.get_running_loop()
        # Resolution and the exchange share one timeout
        deadline = loop.time() + timeout

        try:
            address = await self._resolve_address(host, deadline)
        except ProbeTransportError as e:
            return ProbeOutcome.down(f"UDP {host}:{port} is down: {e.message}")

        transport = None
        start_time = time.perf_counter()

        try:
            transport, receiver = await loop.create_datagram_endpoint(
                lambda: _DatagramReceiver(loop),
                remote_addr=(address, port)
            )
            transport.sendto(options.payload)
            data = await asyncio.wait_for(receiver.reply, timeout=max(deadline - loop.time(), 0))
        except (OSError, asyncio.TimeoutError) as e:
            return self._classify(request, e, _elapsed_ms(start_time))
        finally:
            if transport is not None:
                transport.close()

        elapsed = _elapsed_ms(start_time)
        data = data[:options.receive_buffer_size]

        if not data:
            logger.debug(f"[UDP] {host}:{port} → empty reply")
            return ProbeOutcome.down(
                f"UDP {host}:{port} answered with an empty datagram",
                warning=True
            )

        logger.debug(f"[UDP] {host}:{port} → {len(data)} byte(s) in {elapsed:.1f} ms")
        return ProbeOutcome.up(
            f"UDP {host}:{port} is up, received {len(data)} byte(s) ({elapsed:.0f} ms latency)",
            elapsed
        )

    @staticmethod
    def _classify(request: EndpointRequest, error: BaseException, elapsed: float) -> ProbeOutcome:
        host, port = request.target, request.port
        kind = classify_udp_error(error)
        detail = str(error) or type(error).__name__

        logger.debug(f"[UDP] {host}:{port} → {kind.value} ({detail})")

        if kind in UdpErrorTables.OK_KINDS:
            return ProbeOutcome.up(
                f"UDP {host}:{port} is presumed up, no rejection received ({kind.value})",
                elapsed
            )

        if kind in UdpErrorTables.WARNING_KINDS:
            return ProbeOutcome.down(
                f"UDP {host}:{port} is down, the port rejected the datagram ({kind.value})",
                warning=True
            )

        return ProbeOutcome.down(
            f"UDP {host}:{port} is down: {type(error).__name__}: {detail}"
        )

    @staticmethod
    async def _resolve_address(host: str, deadline: float) -> str:
        """
        Turn a host name into an IP address; IP literals pass through.

        DNS is asked first. Names DNS does not know (``localhost`` and
        other hosts-file entries) fall back to the system resolver.
        Every lookup draws on the time left until ``deadline`` (event
        loop clock).
        """
        try:
            ipaddress.ip_address(host)
            return host
        except ValueError:
            pass

        loop = asyncio.get_running_loop()

        def remaining() -> float:
            left = deadline - loop.time()
            if left <= 0:
                raise ProbeTransportError(
                    f"DNS resolution of {host} timed out",
                    target=host,
                    protocol=Protocol.UDP.value
                )
            return left

        for record_type in ("A", "AAAA"):
            try:
                answers = await dns.asyncresolver.resolve(host, record_type, lifetime=remaining())
                return answers[0].to_text()
            except dns.exception.Timeout as e:
                raise ProbeTransportError(
                    f"DNS resolution of {host} timed out",
                    target=host,
                    protocol=Protocol.UDP.value,
                    cause=e
                ) from e
            except dns.exception.DNSException as e:
                logger.debug(f"[UDP] DNS {record_type} lookup for {host} failed: {e}")

        try:
            infos = await asyncio.wait_for(
                loop.getaddrinfo(host, None, type=socket.SOCK_DGRAM),
                timeout=remaining()
            )
        except (OSError, asyncio.TimeoutError) as e:
            raise ProbeTransportError(
                f"could not resolve {host}: {e}",
                target=host,
                protocol=Protocol.UDP.value,
                cause=e
            ) from e

        if not infos:
            raise ProbeTransportError(f"could not resolve {host}", target=host, protocol=Protocol.UDP.value)
        return infos[0][4][0]


# ============================================================================
# ICMP PROBE
# ============================================================================

class ICMPProbe:
    """
    Sends one echo request through the system ``ping`` binary.

    The reply status is ``Success`` on exit code 0, ``TimedOut`` on
    exit code 1 (no reply) and ``Error (...)`` otherwise. The request
    port is ignored.
    """

    PING_COMMAND = "ping"
    GRACE_SECONDS = 0.5

    _RTT_PATTERN = re.compile(r"time[=<]\s*([\d.]+)\s*ms")

    def __init__(self, timeout_millis: int = Defaults.ICMP_TIMEOUT_MILLIS):
        self.timeout_millis = timeout_millis

    async def probe(self, request: EndpointRequest) -> ProbeOutcome:
        request = _require(request, Protocol.ICMP)
        host = request.target
        start_time = time.perf_counter()

        try:
            status, round_trip = await self._ping(host)
        except OSError as e:
            return ProbeOutcome.down(f"ICMP {host} failed with an error: {type(e).__name__}: {e}")

        if status != "Success":
            return ProbeOutcome.down(f"ICMP {host} is down, reply status: {status}")

        elapsed = round_trip if round_trip is not None else _elapsed_ms(start_time)
        logger.debug(f"[ICMP] {host} → reply in {elapsed:.1f} ms")
        return ProbeOutcome.up(f"ICMP {host} is up ({elapsed:.0f} ms latency)", elapsed)

    def _command(self, host: str) -> List[str]:
        wait_seconds = max(1, round(self.timeout_millis / 1000))
        return [self.PING_COMMAND, "-c", "1", "-W", str(wait_seconds), host]

    async def _ping(self, host: str) -> Tuple[str, Optional[float]]:
        """Run ping once; returns the reply status and the round trip if reported."""
        process = await asyncio.create_subprocess_exec(
            *self._command(host),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.timeout_millis / 1000 + self.GRACE_SECONDS
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            return "TimedOut", None

        if process.returncode == 0:
            match = self._RTT_PATTERN.search(stdout.decode(errors="replace"))
            return "Success", float(match.group(1)) if match else None

        if process.returncode == 1:
            return "TimedOut", None

        detail = stderr.decode(errors="replace").strip() or f"exit code {process.returncode}"
        return f"Error ({detail})", None


# ============================================================================
# HTTP / HTTPS PROBE
# ============================================================================

def is_tls_verification_error(error: BaseException) -> bool:
    """Walk the exception chain looking for a certificate validation failure."""
    seen = set()
    current: Optional[BaseException] = error

    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, ssl.SSLCertVerificationError):
            return True
        if "CERTIFICATE_VERIFY_FAILED" in str(current):
            return True
        current = current.__cause__ or current.__context__

    return False


class HTTPProbe:
    """
    Performs HTTP / HTTPS checks with httpx.

    One client is built per call from two flags, ``ignore_tls`` and
    ``follow_redirects``. Every call starts from the shared cookie jar
    and merges the cookies it received back into it, so cookies set by
    any check are visible to the cookie-presence check of every other.

    Features
    --------
    • Body and Content-Type only for POST / PUT / PATCH
    • Redirect header expectations when auto-redirect is prevented
    • Required-cookie check against the shared jar
    • TLS failures logged even when tolerated
    """

    def __init__(
        self,
        timeout_seconds: float = Defaults.HTTP_TIMEOUT_SECONDS,
        cookies: Optional[httpx.Cookies] = None
    ):
        self.timeout_seconds = timeout_seconds
        self.cookies = cookies if cookies is not None else httpx.Cookies()

    async def probe(self, request: EndpointRequest) -> ProbeOutcome:
        """
        Execute an HTTP check.

        Parameters
        ----------
        request : EndpointRequest
            An HTTP or HTTPS request.

        Returns
        -------
        ProbeOutcome
            Latency is the sum of both round trips when a redirect was
            followed manually.
        """
        request = _require(request, Protocol.HTTP, Protocol.HTTPS)
        web = request.web
        label = f"{request.target} via HTTP {web.method}"
        ignore_tls = request.protocol is Protocol.HTTPS and web.ignore_tls_errors

        try:
            return await self._evaluate(request, web, label, ignore_tls)
        except (httpx.HTTPError, httpx.InvalidURL, OSError, OverflowError) as e:
            # OverflowError: the socket layer rejects ports past 65535
            logger.debug(f"[HTTP] {label} → {type(e).__name__}: {e}")
            return ProbeOutcome.down(f"{label} failed with an error: {type(e).__name__}: {e}")

    async def _evaluate(
        self,
        request: EndpointRequest,
        web: WebOptions,
        label: str,
        ignore_tls: bool
    ) -> ProbeOutcome:
        content: Optional[bytes] = None
        headers: Dict[str, str] = {}

        if web.body and web.method in HTTPMethods.with_body():
            content = web.body.encode("utf-8")
            if web.content_type:
                headers["Content-Type"] = web.content_type

        response, latency = await self._send(
            web.method,
            request.target,
            content=content,
            headers=headers,
            follow_redirects=not web.prevent_redirect,
            ignore_tls=ignore_tls
        )

        if web.prevent_redirect and 300 <= response.status_code <= 399:
            failure = self._check_redirect_headers(response, web, label)
            if failure is not None:
                return ProbeOutcome.down(failure)

            location = response.headers.get("Location")
            if not location:
                return ProbeOutcome.down(
                    f"{label} failed because the redirect response carried no Location header"
                )

            # The followed hop always auto-redirects
            response, followed = await self._send(
                HTTPMethods.GET.value,
                str(response.url.join(location)),
                follow_redirects=True,
                ignore_tls=ignore_tls
            )
            latency += followed

        if response.status_code != web.expected_status:
            return ProbeOutcome.down(
                f"{label} did not match the expected response of {web.expected_status}: "
                f"received {response.status_code} {response.reason_phrase}"
            )

        if web.cookies_required:
            missing = self.missing_cookies(request.target, web.cookies_required)
            if missing:
                return ProbeOutcome.down(
                    f"{label} failed because the response was missing required cookies {','.join(missing)}"
                )

        logger.debug(f"[HTTP] {label} → {response.status_code} in {latency:.1f} ms")
        return ProbeOutcome.up(f"{label} is up ({latency:.0f} ms latency)", latency)

    async def _send(
        self,
        method: str,
        url: str,
        content: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
        follow_redirects: bool = True,
        ignore_tls: bool = False
    ) -> Tuple[httpx.Response, float]:
        """
        Send with certificate verification; retry unverified if tolerated.

        The TLS failure is logged either way.
        """
        try:
            return await self._send_once(method, url, content, headers, follow_redirects, verify=True)
        except httpx.HTTPError as e:
            if not is_tls_verification_error(e):
                raise
            logger.warning(f"[HTTP] TLS validation failed for {url}: {e}")
            if not ignore_tls:
                raise
            logger.warning(f"[HTTP] Ignoring TLS errors for {url} as configured")

        return await self._send_once(method, url, content, headers, follow_redirects, verify=False)

    async def _send_once(
        self,
        method: str,
        url: str,
        content: Optional[bytes],
        headers: Optional[Dict[str, str]],
        follow_redirects: bool,
        verify: bool
    ) -> Tuple[httpx.Response, float]:
        async with httpx.AsyncClient(
            timeout=self.timeout_seconds,
            follow_redirects=follow_redirects,
            verify=verify,
            cookies=self.cookies,
            headers={"User-Agent": Defaults.USER_AGENT}
        ) as client:
            start_time = time.perf_counter()
            try:
                response = await client.request(method, url, content=content, headers=headers)
            finally:
                # Cookies set before a failure still count
                self.cookies.update(client.cookies)
            elapsed = _elapsed_ms(start_time)

        return response, elapsed

    @staticmethod
    def _check_redirect_headers(
        response: httpx.Response,
        web: WebOptions,
        label: str
    ) -> Optional[str]:
        """Return a failure message for the first unmet header expectation."""
        for name, expected in web.redirect_header_expectations:
            if name not in response.headers:
                present = ", ".join(sorted(set(response.headers.keys())))
                return (
                    f"{label} failed because the {name} header was not present in the "
                    f"redirect response. The response contained these headers: {present}"
                )

            values = [value for value in response.headers.get_list(name) if value]
            if not values:
                return f"{label} failed because the {name} header did not contain any values."

            if expected not in values:
                return (
                    f"{label} failed because the {name} header did not contain the value "
                    f"{expected}, it contained {','.join(values)}."
                )

        return None

    def missing_cookies(self, url: str, names: Iterable[str]) -> List[str]:
        """Required cookie names the shared jar would not send to ``url``."""
        probe_request = httpx.Request(HTTPMethods.GET.value, url)
        self.cookies.set_cookie_header(probe_request)

        present = set()
        for pair in probe_request.headers.get("Cookie", "").split(";"):
            cookie_name = pair.split("=", 1)[0].strip()
            if cookie_name:
                present.add(cookie_name)

        return [name for name in names if name not in present]


# ============================================================================
# PROBE ROUTER
# ============================================================================

class ProbeRouter:
    """
    Routes each request to the probe for its protocol.

    HTTP and HTTPS share one ``HTTPProbe`` and therefore one cookie jar.
    """

    def __init__(
        self,
        http_probe: Optional[HTTPProbe] = None,
        tcp_probe: Optional[TCPProbe] = None,
        udp_probe: Optional[UDPProbe] = None,
        icmp_probe: Optional[ICMPProbe] = None
    ):
        http_probe = http_probe or HTTPProbe()
        self._probes = {
            Protocol.HTTP: http_probe,
            Protocol.HTTPS: http_probe,
            Protocol.TCP: tcp_probe or TCPProbe(),
            Protocol.UDP: udp_probe or UDPProbe(),
            Protocol.ICMP: icmp_probe or ICMPProbe(),
        }

    async def probe(self, request: EndpointRequest) -> ProbeOutcome:
        if request is None:
            raise ValueError("request must not be None")
        return await self._probes[request.protocol].probe(request)
