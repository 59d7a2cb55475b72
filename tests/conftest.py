from __future__ import annotations

import shutil
import socket
import ssl
import subprocess
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Dict, List, Optional, Tuple

import pytest
from loguru import logger

from config.constants import Protocol
from monitoring.models import EndpointRequest, UdpOptions, WebOptions


# ============================================================================
# RECORDING COLLABORATORS
# ============================================================================

class RecordingMetricsSink:
    def __init__(self, fail: Optional[BaseException] = None) -> None:
        self.datapoints: List[Tuple[str, str, float, str, Dict[str, str]]] = []
        self.fail = fail

    async def put_metric(self, namespace, metric_name, value, unit, dimensions) -> None:
        if self.fail is not None:
            raise self.fail
        self.datapoints.append((namespace, metric_name, value, unit, dict(dimensions)))

    def names(self) -> List[str]:
        return [datapoint[1] for datapoint in self.datapoints]


class RecordingChannel:
    def __init__(self, fail: Optional[BaseException] = None) -> None:
        self.published: List[Tuple[str, str, Optional[str]]] = []
        self.fail = fail

    async def publish(self, topic, body, subject=None) -> None:
        if self.fail is not None:
            raise self.fail
        self.published.append((topic, body, subject))


@pytest.fixture
def metrics_sink() -> RecordingMetricsSink:
    return RecordingMetricsSink()


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


# ============================================================================
# REQUEST BUILDERS
# ============================================================================

def web_request(url: str, protocol: Protocol = Protocol.HTTP, **web_options) -> EndpointRequest:
    return EndpointRequest(
        protocol=protocol,
        target=url,
        alert_topic="ops",
        web=WebOptions(**web_options),
    )


def network_request(protocol: Protocol, host: str, port: Optional[int], timeout_millis: int = 500, **kwargs) -> EndpointRequest:
    if protocol is Protocol.UDP:
        kwargs.setdefault("udp", UdpOptions())
    return EndpointRequest(
        protocol=protocol,
        target=host,
        port=port,
        timeout_millis=timeout_millis,
        alert_topic="ops",
        **kwargs,
    )


# ============================================================================
# LOCAL HTTP SERVER
# ============================================================================

class _Handler(BaseHTTPRequestHandler):
    def log_message(self, format: str, *args) -> None:  # noqa: A002
        return

    def _reply(self, status: int, headers: Dict[str, str], body: bytes, include_body: bool) -> None:
        self.send_response(status)
        for name, value in headers.items():
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if include_body:
            self.wfile.write(body)

    def _route(self, include_body: bool) -> None:
        if self.path == "/redirect":
            self._reply(302, {"Location": "/ok", "X-Redirect-Reason": "login"}, b"", include_body)
            return

        if self.path == "/redirect-to-missing":
            self._reply(302, {"Location": "/missing"}, b"", include_body)
            return

        if self.path == "/redirect-without-location":
            self._reply(302, {}, b"", include_body)
            return

        if self.path == "/set-cookie":
            self._reply(200, {"Set-Cookie": "session=abc123; Path=/"}, b"cookie set", include_body)
            return

        if self.path == "/ok":
            self._reply(200, {"Content-Type": "text/plain"}, b"ok", include_body)
            return

        if self.path == "/unavailable":
            self._reply(503, {"Content-Type": "text/plain"}, b"down", include_body)
            return

        self._reply(404, {"Content-Type": "text/plain"}, b"Not Found", include_body)

    def do_GET(self) -> None:  # noqa: N802
        self._route(include_body=True)

    def do_HEAD(self) -> None:  # noqa: N802
        self._route(include_body=False)

    def do_POST(self) -> None:  # noqa: N802
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length) if length else b""
        content_type = self.headers.get("Content-Type", "")

        if self.path == "/echo" and body == b'{"ping": 1}' and content_type == "application/json":
            self._reply(201, {"Content-Type": "application/json"}, body, True)
        else:
            self._reply(400, {"Content-Type": "text/plain"}, b"bad request", True)


@pytest.fixture(scope="module")
def http_base_url() -> str:
    httpd = HTTPServer(("127.0.0.1", 0), _Handler)
    host, port = httpd.server_address
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()

    try:
        yield f"http://{host}:{port}"
    finally:
        httpd.shutdown()
        thread.join(timeout=5)
        httpd.server_close()


@pytest.fixture(scope="module")
def https_base_url(tmp_path_factory) -> str:
    """Same routes as ``http_base_url`` behind a self-signed certificate."""
    openssl = shutil.which("openssl")
    if openssl is None:
        pytest.skip("openssl is required to issue a self-signed certificate")

    directory = tmp_path_factory.mktemp("tls")
    cert_file, key_file = directory / "cert.pem", directory / "key.pem"
    subprocess.run(
        [
            openssl, "req", "-x509", "-newkey", "rsa:2048", "-nodes",
            "-keyout", str(key_file), "-out", str(cert_file),
            "-days", "1", "-subj", "/CN=127.0.0.1",
        ],
        check=True,
        capture_output=True,
    )

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(str(cert_file), str(key_file))

    httpd = HTTPServer(("127.0.0.1", 0), _Handler)
    # Handshake failures (the client rejecting the certificate) surface as
    # OSError in get_request, which the server drops
    httpd.socket = context.wrap_socket(httpd.socket, server_side=True)
    host, port = httpd.server_address
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()

    try:
        yield f"https://{host}:{port}"
    finally:
        httpd.shutdown()
        thread.join(timeout=5)
        httpd.server_close()


@pytest.fixture
def log_records() -> List[dict]:
    """Loguru records emitted while the test runs."""
    records: List[dict] = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    try:
        yield records
    finally:
        logger.remove(handler_id)


# ============================================================================
# LOCAL SOCKETS
# ============================================================================

@pytest.fixture
def tcp_listener() -> Tuple[str, int]:
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(8)
    try:
        yield server.getsockname()
    finally:
        server.close()


@pytest.fixture
def closed_port() -> int:
    """A port nothing listens on (TCP and UDP)."""
    probe = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    return port


def _udp_server(reply: Optional[bytes]) -> Tuple[socket.socket, threading.Thread, threading.Event]:
    """Replies to every datagram with ``reply``; echoes when ``reply`` is None."""
    server = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    server.bind(("127.0.0.1", 0))
    server.settimeout(0.1)
    stop = threading.Event()

    def serve() -> None:
        while not stop.is_set():
            try:
                data, addr = server.recvfrom(2048)
            except socket.timeout:
                continue
            except OSError:
                return
            server.sendto(data if reply is None else reply, addr)

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    return server, thread, stop


@pytest.fixture
def udp_echo_server() -> Tuple[str, int]:
    server, thread, stop = _udp_server(None)
    try:
        yield server.getsockname()
    finally:
        stop.set()
        thread.join(timeout=2)
        server.close()


@pytest.fixture
def udp_empty_reply_server() -> Tuple[str, int]:
    server, thread, stop = _udp_server(b"")
    try:
        yield server.getsockname()
    finally:
        stop.set()
        thread.join(timeout=2)
        server.close()


@pytest.fixture
def udp_silent_server() -> Tuple[str, int]:
    """Bound but never answers."""
    server = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    server.bind(("127.0.0.1", 0))
    try:
        yield server.getsockname()
    finally:
        server.close()
