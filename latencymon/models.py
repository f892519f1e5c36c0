"""Data models for probe results."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Success:
    """The server answered. Any status code counts, 4xx and 5xx included."""

    status_code: int


@dataclass(frozen=True)
class Failure:
    """A transport-level failure reduced to a stable category.

    Attributes:
        category: Category label, e.g. "DNS-Error" or "HTTP-Operation-Timeout".
        synthetic_code: Integer standing in for an HTTP status.
        is_timeout: Whether the underlying error was a timeout.
        message: Text of the original error, for diagnostics only.
    """

    category: str
    synthetic_code: int
    is_timeout: bool
    message: str = ""


Outcome = Success | Failure


@dataclass(frozen=True)
class ProbeResult:
    """Result of a single probe attempt.

    Attributes:
        endpoint_name: Name of the probed endpoint.
        elapsed_ms: Wall-clock duration of the attempt in milliseconds.
        outcome: Either Success or Failure, never both.
    """

    endpoint_name: str
    elapsed_ms: int
    outcome: Outcome

    @property
    def is_success(self) -> bool:
        return isinstance(self.outcome, Success)

    @property
    def code(self) -> int:
        """HTTP status on success, synthetic code on failure."""
        if isinstance(self.outcome, Success):
            return self.outcome.status_code
        return self.outcome.synthetic_code
