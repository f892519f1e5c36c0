"""Single timed HTTP probe against one endpoint."""

import functools
import logging
import socket
import time
from dataclasses import dataclass

import requests
from requests.adapters import HTTPAdapter
from requests.structures import CaseInsensitiveDict
from urllib3 import HTTPHeaderDict
from urllib3.connection import HTTPConnection, HTTPSConnection
from urllib3.connectionpool import HTTPConnectionPool, HTTPSConnectionPool

from . import __version__
from .classifier import FailureCategory, classify_error
from .config import EndpointConfig
from .models import Failure, ProbeResult, Success
from .sinks import LogSink

logger = logging.getLogger(__name__)

USER_AGENT = f"latencymon/{__version__}"

# Fixed transport timeouts in seconds. They bound the worst-case duration of a
# probe and are not configurable per endpoint.
DIAL_TIMEOUT = 30.0
KEEP_ALIVE_INTERVAL = 30
TLS_HANDSHAKE_TIMEOUT = 10.0
RESPONSE_HEADER_TIMEOUT = 10.0


@dataclass(frozen=True)
class ClientTimeouts:
    """Timeouts applied to every probe.

    Attributes:
        dial: Seconds allowed to open the TCP connection.
        tls_handshake: Seconds allowed for the TLS handshake on HTTPS targets.
        response_header: Seconds to wait for the status line and headers.
        keep_alive: TCP keep-alive idle and probe interval in seconds.
    """

    dial: float = DIAL_TIMEOUT
    tls_handshake: float = TLS_HANDSHAKE_TIMEOUT
    response_header: float = RESPONSE_HEADER_TIMEOUT
    keep_alive: int = KEEP_ALIVE_INTERVAL

    @property
    def requests_timeout(self) -> tuple[float, float]:
        """(connect, read) tuple in the form requests expects."""
        return (self.dial, self.response_header)


DEFAULT_TIMEOUTS = ClientTimeouts()


class _ProbeHTTPSConnection(HTTPSConnection):
    """HTTPS connection whose TLS handshake runs under its own timeout."""

    tls_handshake_timeout = TLS_HANDSHAKE_TIMEOUT

    def _new_conn(self) -> socket.socket:
        sock = super()._new_conn()
        sock.settimeout(self.tls_handshake_timeout)
        return sock


class _ProbeHTTPSConnectionPool(HTTPSConnectionPool):
    ConnectionCls = _ProbeHTTPSConnection

    def __init__(self, *args, tls_handshake_timeout: float = TLS_HANDSHAKE_TIMEOUT, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.tls_handshake_timeout = tls_handshake_timeout

    def _new_conn(self) -> _ProbeHTTPSConnection:
        conn = super()._new_conn()
        conn.tls_handshake_timeout = self.tls_handshake_timeout
        return conn


def _keepalive_socket_options(interval: int) -> list[tuple[int, int, int]]:
    """Default urllib3 socket options plus TCP keep-alive where supported."""
    options = list(HTTPConnection.default_socket_options)
    options.append((socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1))
    for name in ("TCP_KEEPIDLE", "TCP_KEEPINTVL"):
        if hasattr(socket, name):
            options.append((socket.IPPROTO_TCP, getattr(socket, name), interval))
    return options


class ProbeAdapter(HTTPAdapter):
    """Transport adapter carrying the fixed probe transport settings.

    Retries are disabled: every probe is exactly one attempt.
    """

    def __init__(self, timeouts: ClientTimeouts = DEFAULT_TIMEOUTS) -> None:
        # init_poolmanager() runs inside HTTPAdapter.__init__.
        self._timeouts = timeouts
        super().__init__(max_retries=0)

    def init_poolmanager(self, *args, **kwargs) -> None:
        kwargs["socket_options"] = _keepalive_socket_options(self._timeouts.keep_alive)
        super().init_poolmanager(*args, **kwargs)
        self.poolmanager.pool_classes_by_scheme = {
            "http": HTTPConnectionPool,
            "https": functools.partial(
                _ProbeHTTPSConnectionPool, tls_handshake_timeout=self._timeouts.tls_handshake
            ),
        }


def _new_session(timeouts: ClientTimeouts) -> requests.Session:
    """Create a session with no pooled state, proxies or netrc lookups."""
    session = requests.Session()
    session.trust_env = False
    session.headers = CaseInsensitiveDict({"User-Agent": USER_AGENT})
    adapter = ProbeAdapter(timeouts)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def build_request(endpoint: EndpointConfig, session: requests.Session) -> requests.PreparedRequest:
    """Prepare the request for an endpoint.

    Configured headers are appended in order, so a repeated name produces
    repeated header lines. A configured header replaces a session default of
    the same name (e.g. User-Agent) but never the basic-auth header.

    Raises:
        requests.RequestException: If the method or URL cannot be prepared.
    """
    auth = None
    if endpoint.basic_auth is not None:
        auth = (endpoint.basic_auth.username, endpoint.basic_auth.password)

    prepared = session.prepare_request(requests.Request(endpoint.method, endpoint.url, auth=auth))

    if endpoint.headers:
        headers = HTTPHeaderDict(prepared.headers)
        for header in endpoint.headers:
            if header.name in session.headers:
                headers.discard(header.name)
        for header in endpoint.headers:
            headers.add(header.name, header.value)
        prepared.headers = headers

    return prepared


def _elapsed_ms(start: float) -> int:
    return max(0, int((time.monotonic() - start) * 1000))


def check_endpoint(
    endpoint: EndpointConfig,
    log_sink: LogSink | None = None,
    timeouts: ClientTimeouts = DEFAULT_TIMEOUTS,
) -> ProbeResult:
    """Probe one endpoint once and return the timed outcome.

    Elapsed time runs from just before the request is built until the response
    headers arrive or the attempt fails, connection setup and TLS included.
    The body is never read. Failures never propagate: they are classified and
    returned as a Failure outcome.

    Args:
        endpoint: Endpoint to probe.
        log_sink: Optional sink receiving one line per attempt.
        timeouts: Transport timeouts.

    Returns:
        ProbeResult carrying either the HTTP status or the classified failure.
    """
    with _new_session(timeouts) as session:
        start = time.monotonic()
        try:
            request = build_request(endpoint, session)
            with session.send(request, timeout=timeouts.requests_timeout, stream=True) as response:
                elapsed_ms = _elapsed_ms(start)
                outcome = Success(status_code=response.status_code)
        except Exception as e:
            elapsed_ms = _elapsed_ms(start)
            classification = classify_error(e)
            if classification.category is FailureCategory.UNHANDLED:
                logger.warning("Unhandled error probing %s: %s", endpoint.name, e)
            else:
                logger.debug("Probe of %s failed: %s", endpoint.name, e)
            outcome = Failure(
                category=classification.label,
                synthetic_code=classification.code,
                is_timeout=classification.is_timeout,
                message=str(e),
            )

    result = ProbeResult(endpoint_name=endpoint.name, elapsed_ms=elapsed_ms, outcome=outcome)
    if log_sink is not None:
        log_sink.write(format_log_line(result))
    return result


def format_elapsed(elapsed_ms: int) -> str:
    """Render a duration: whole milliseconds below one second, else seconds."""
    if elapsed_ms < 1000:
        return f"{elapsed_ms} ms"
    return f"{elapsed_ms / 1000:.2f} seconds"


def format_log_line(result: ProbeResult) -> str:
    return f"System: {result.endpoint_name}, HTTP Status {result.code}, Time Taken : {result.elapsed_ms} ms"


def format_display(result: ProbeResult) -> str:
    """Tab-separated console line for a result."""
    if isinstance(result.outcome, Failure):
        status = f"{result.outcome.category} Status {result.code}"
    else:
        status = f"HTTP Status {result.code}"
    return f"System: {result.endpoint_name} \t {status} \t {format_elapsed(result.elapsed_ms)}"


def measure_endpoint(endpoint: EndpointConfig, log_sink: LogSink | None = None) -> str:
    """Probe an endpoint, log the attempt and return its display line."""
    return format_display(check_endpoint(endpoint, log_sink))
