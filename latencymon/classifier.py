"""Reduce transport failures to a stable category and synthetic code.

Errors raised by requests usually wrap a urllib3 error, which in turn wraps
the socket-level cause. Classification looks at the whole chain, so a DNS
failure is recognised whether it surfaces as ``socket.gaierror``,
``NameResolutionError`` or a ``requests.ConnectionError`` around them.
"""

import errno
import http.client
import socket
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum

from requests import exceptions as requests_exceptions
from urllib3 import exceptions as urllib3_exceptions

# Added to the base code when the failure was a timeout.
TIMEOUT_CODE_OFFSET = 5

# Message fragments identifying the two refined timeout reasons.
RESPONSE_TIMEOUT_MARKERS = ("read timed out", "timeout awaiting response headers")
TLS_HANDSHAKE_TIMEOUT_MARKERS = ("handshake operation timed out", "tls handshake timeout")

# Bound on how many nested errors are inspected.
MAX_CHAIN_DEPTH = 32


class FailureCategory(str, Enum):
    """Failure categories, in classification order, with their base codes."""

    DNS_CONFIG = ("DNS-Config-Error", 10)
    DNS = ("DNS-Error", 20)
    ADDRESS = ("Network-Address-Error", 30)
    INVALID_ADDRESS = ("Network-InvalidAddress-Error", 40)
    HTTP_OPERATION = ("HTTP-Operation-Error", 50)
    HTTP_PARSE = ("HTTP-Parse-Error", 60)
    UNKNOWN_NETWORK = ("Network-Unknown-Error", 70)
    UNHANDLED = ("Unhandled-Error", 80)

    def __new__(cls, label: str, base_code: int) -> "FailureCategory":
        member = str.__new__(cls, label)
        member._value_ = label
        member.base_code = base_code
        return member


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one error."""

    category: FailureCategory
    label: str
    code: int
    is_timeout: bool


def iter_error_chain(error: BaseException) -> Iterator[BaseException]:
    """Yield the error and every error it wraps, outermost first."""
    seen: set[int] = set()
    pending = [error]
    while pending and len(seen) < MAX_CHAIN_DEPTH:
        current = pending.pop(0)
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current

        linked = [current.__cause__, current.__context__, getattr(current, "reason", None)]
        linked.extend(current.args)
        pending.extend(item for item in linked if isinstance(item, BaseException))


def _has_errno(error: BaseException, *codes: int | None) -> bool:
    return isinstance(error, OSError) and error.errno is not None and error.errno in codes


def _is_dns_config_error(error: BaseException) -> bool:
    return isinstance(error, socket.gaierror) and _has_errno(
        error, getattr(socket, "EAI_SYSTEM", None), getattr(socket, "EAI_FAIL", None)
    )


def _is_dns_error(error: BaseException) -> bool:
    return isinstance(error, (socket.gaierror, socket.herror, urllib3_exceptions.NameResolutionError))


def _is_address_error(error: BaseException) -> bool:
    return isinstance(
        error,
        (
            urllib3_exceptions.LocationParseError,
            urllib3_exceptions.LocationValueError,
            requests_exceptions.InvalidURL,
        ),
    )


def _is_invalid_address_error(error: BaseException) -> bool:
    return isinstance(error, requests_exceptions.MissingSchema) or _has_errno(error, errno.EADDRNOTAVAIL)


def _is_operation_error(error: BaseException) -> bool:
    # Builtin ConnectionError: refused, reset, aborted, broken pipe.
    return isinstance(
        error,
        (
            ConnectionError,
            urllib3_exceptions.NewConnectionError,
            urllib3_exceptions.ConnectTimeoutError,
        ),
    )


def _is_parse_error(error: BaseException) -> bool:
    return isinstance(error, (http.client.HTTPException, urllib3_exceptions.HeaderParsingError))


def _is_unknown_network_error(error: BaseException) -> bool:
    return isinstance(
        error, (requests_exceptions.InvalidSchema, urllib3_exceptions.URLSchemeUnknown)
    ) or _has_errno(error, errno.EAFNOSUPPORT, errno.EPROTONOSUPPORT)


_MATCHERS: tuple[tuple[FailureCategory, Callable[[BaseException], bool]], ...] = (
    (FailureCategory.DNS_CONFIG, _is_dns_config_error),
    (FailureCategory.DNS, _is_dns_error),
    (FailureCategory.ADDRESS, _is_address_error),
    (FailureCategory.INVALID_ADDRESS, _is_invalid_address_error),
    (FailureCategory.HTTP_OPERATION, _is_operation_error),
    (FailureCategory.HTTP_PARSE, _is_parse_error),
    (FailureCategory.UNKNOWN_NETWORK, _is_unknown_network_error),
)


def _is_timeout(error: BaseException) -> bool:
    if isinstance(error, (TimeoutError, requests_exceptions.Timeout)):
        return True
    # urllib3 derives NewConnectionError from ConnectTimeoutError; a refused
    # connection is not a timeout.
    return isinstance(error, urllib3_exceptions.TimeoutError) and not isinstance(
        error, urllib3_exceptions.NewConnectionError
    )


def _mentions(messages: str, markers: tuple[str, ...]) -> bool:
    return any(marker in messages for marker in markers)


def _categorize(chain: list[BaseException]) -> FailureCategory:
    for category, matches in _MATCHERS:
        if any(matches(item) for item in chain):
            return category
    return FailureCategory.UNHANDLED


def classify_error(error: BaseException) -> Classification:
    """Classify a failed probe attempt.

    Never raises: anything unrecognised falls into the catch-all category.

    Args:
        error: Exception raised while building or sending the request.

    Returns:
        Classification with the display label and synthetic code.
    """
    chain = list(iter_error_chain(error))
    category = _categorize(chain)
    label = category.value
    code = category.base_code

    is_timeout = any(_is_timeout(item) for item in chain)
    if is_timeout:
        code += TIMEOUT_CODE_OFFSET
        label = label.replace("Error", "Timeout", 1)

        messages = " ".join(str(item) for item in chain).lower()
        # urllib3 reports a handshake timeout as a read timeout caused by the
        # handshake, so the handshake marker is checked first.
        if _mentions(messages, TLS_HANDSHAKE_TIMEOUT_MARKERS):
            label = label.replace("Unhandled", "TLSHandshake", 1)
        elif _mentions(messages, RESPONSE_TIMEOUT_MARKERS):
            label = label.replace("Unhandled", "Response", 1)

    return Classification(category=category, label=label, code=code, is_timeout=is_timeout)
