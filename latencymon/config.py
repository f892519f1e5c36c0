"""Configuration loader with type-safe dataclasses."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


class ConfigError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


DEFAULT_CONFIG_PATH = "config/config.json"
DEFAULT_LOGS_DIR = "logs"
DEFAULT_METHOD = "GET"


@dataclass(frozen=True)
class TimingConfig:
    """Polling cadence and total run duration."""

    interval_seconds: int
    run_duration_hours: int

    def __post_init__(self) -> None:
        if self.interval_seconds < 1:
            raise ConfigError(f"intervalSeconds must be a positive integer (got {self.interval_seconds})")
        if self.run_duration_hours < 1:
            raise ConfigError(f"runDurationHours must be a positive integer (got {self.run_duration_hours})")

    @property
    def run_duration_seconds(self) -> int:
        return self.run_duration_hours * 3600


@dataclass(frozen=True)
class BasicAuth:
    """Static basic-auth credentials for an endpoint."""

    username: str
    password: str


@dataclass(frozen=True)
class Header:
    """A single request header. Names may repeat within an endpoint."""

    name: str
    value: str

    def __post_init__(self) -> None:
        if not self.name:
            raise ConfigError("Header name cannot be empty")


@dataclass(frozen=True)
class EndpointConfig:
    """Configuration for a single HTTP endpoint to probe.

    The URL is deliberately not validated here: a malformed URL is reported
    as a classified probe failure on every tick rather than refusing to start.

    Attributes:
        name: Display label used in log and console lines.
        url: Target URL.
        method: HTTP verb (default GET).
        basic_auth: Credentials, or None when both username and password are empty.
        headers: Ordered headers; every entry is sent, including repeated names.
    """

    name: str
    url: str
    method: str = DEFAULT_METHOD
    basic_auth: BasicAuth | None = None
    headers: tuple[Header, ...] = ()

    def __post_init__(self) -> None:
        if not self.name:
            raise ConfigError("Endpoint name cannot be empty")
        if not self.method:
            raise ConfigError(f"HTTP method cannot be empty for '{self.name}'")


@dataclass(frozen=True)
class Config:
    """Main configuration container."""

    timings: TimingConfig
    endpoints: list[EndpointConfig] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.endpoints:
            raise ConfigError("At least one endpoint must be configured")


def _parse_timings(data: dict | None) -> TimingConfig:
    """Parse the timings section."""
    if data is None:
        raise ConfigError("Configuration must contain a 'timings' section")
    if not isinstance(data, dict):
        raise ConfigError("'timings' section must be a dictionary")

    values = {}
    for key in ("intervalSeconds", "runDurationHours"):
        value = data.get(key, 0)
        # bool is an int subclass; true/false are not timings.
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"Timings must be integers: '{key}' is {value!r}")
        values[key] = value

    return TimingConfig(
        interval_seconds=values["intervalSeconds"],
        run_duration_hours=values["runDurationHours"],
    )


def _parse_basic_auth(data: dict | None, name: str) -> BasicAuth | None:
    """Parse basicAuth; returns None unless a username or password is set."""
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ConfigError(f"'basicAuth' must be a dictionary for '{name}'")

    username = str(data.get("userName") or "")
    password = str(data.get("password") or "")
    if not username and not password:
        return None
    return BasicAuth(username=username, password=password)


def _parse_headers(data: list | None, name: str) -> tuple[Header, ...]:
    """Parse the ordered header list of an endpoint."""
    if data is None:
        return ()
    if not isinstance(data, list):
        raise ConfigError(f"'headers' must be a list for '{name}'")

    headers = []
    for i, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise ConfigError(f"Header entry {i} of '{name}' must be a dictionary")
        if entry.get("name") is None:
            raise ConfigError(f"Header entry {i} of '{name}' is missing 'name' field")
        value = entry.get("value")
        headers.append(Header(name=str(entry["name"]), value="" if value is None else str(value)))
    return tuple(headers)


def _parse_endpoint(data: dict, index: int) -> EndpointConfig:
    """Parse a single endpoint entry."""
    if not isinstance(data, dict):
        raise ConfigError(f"Endpoint entry {index} must be a dictionary")

    name = data.get("name")
    if name is None:
        raise ConfigError(f"Endpoint entry {index} is missing 'name' field")
    name = str(name)

    return EndpointConfig(
        name=name,
        url=str(data.get("url") or ""),
        method=str(data.get("method") or DEFAULT_METHOD).upper(),
        basic_auth=_parse_basic_auth(data.get("basicAuth"), name),
        headers=_parse_headers(data.get("headers"), name),
    )


def _apply_env_overrides(config_data: dict) -> dict:
    """Apply environment variable overrides to configuration.

    Supported overrides:
    - LATENCYMON_INTERVAL_SECONDS: Override timings.intervalSeconds
    - LATENCYMON_RUN_DURATION_HOURS: Override timings.runDurationHours
    """
    for env_name, key in (
        ("LATENCYMON_INTERVAL_SECONDS", "intervalSeconds"),
        ("LATENCYMON_RUN_DURATION_HOURS", "runDurationHours"),
    ):
        value = os.environ.get(env_name)
        if value is None:
            continue
        if config_data.get("timings") is None:
            config_data["timings"] = {}
        timings = config_data["timings"]
        if not isinstance(timings, dict):
            raise ConfigError("'timings' section must be a dictionary")
        try:
            timings[key] = int(value)
        except ValueError:
            raise ConfigError(f"{env_name} must be an integer (got {value!r})")

    return config_data


def load_config(config_path: str) -> Config:
    """Load and validate configuration from a YAML or JSON file.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Validated Config object.

    Raises:
        ConfigError: If the file cannot be read or configuration is invalid.
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse configuration: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read configuration file: {e}")

    if data is None:
        raise ConfigError("Configuration file is empty")

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a dictionary")

    data = _apply_env_overrides(data)

    endpoints_data = data.get("endpoints")
    if endpoints_data is None:
        endpoints_data = []
    if not isinstance(endpoints_data, list):
        raise ConfigError("'endpoints' must be a list")

    endpoints = [_parse_endpoint(entry, i) for i, entry in enumerate(endpoints_data)]

    return Config(
        timings=_parse_timings(data.get("timings")),
        endpoints=endpoints,
    )
