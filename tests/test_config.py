"""Tests for the configuration module."""

from pathlib import Path

import pytest

from latencymon.config import (
    BasicAuth,
    Config,
    ConfigError,
    EndpointConfig,
    Header,
    TimingConfig,
    load_config,
)


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    """Create a temporary directory for config files."""
    return tmp_path


@pytest.fixture
def valid_config_content() -> str:
    """Return a valid configuration in the JSON layout of config/config.json."""
    return """{
  "timings": {"intervalSeconds": 5, "runDurationHours": 2},
  "endpoints": [
    {
      "name": "Example",
      "method": "GET",
      "url": "https://example.com",
      "basicAuth": {"userName": "", "password": ""},
      "headers": [
        {"name": "X-Trace-Id", "value": "a"},
        {"name": "X-Trace-Id", "value": "b"}
      ]
    },
    {
      "name": "Private",
      "method": "post",
      "url": "https://example.org/api",
      "basicAuth": {"userName": "admin", "password": ""}
    }
  ]
}
"""


def _write(config_dir: Path, content: str, name: str = "config.json") -> str:
    path = config_dir / name
    path.write_text(content)
    return str(path)


class TestTimingConfig:
    """Tests for TimingConfig dataclass."""

    def test_creates_valid_timings(self) -> None:
        timings = TimingConfig(interval_seconds=1, run_duration_hours=3)
        assert timings.interval_seconds == 1
        assert timings.run_duration_seconds == 3 * 3600

    @pytest.mark.parametrize("interval", [0, -1])
    def test_rejects_non_positive_interval(self, interval: int) -> None:
        with pytest.raises(ConfigError, match="intervalSeconds"):
            TimingConfig(interval_seconds=interval, run_duration_hours=1)

    def test_rejects_zero_duration(self) -> None:
        with pytest.raises(ConfigError, match="runDurationHours"):
            TimingConfig(interval_seconds=5, run_duration_hours=0)


class TestEndpointConfig:
    """Tests for EndpointConfig dataclass."""

    def test_defaults(self) -> None:
        endpoint = EndpointConfig(name="Example", url="https://example.com")
        assert endpoint.method == "GET"
        assert endpoint.basic_auth is None
        assert endpoint.headers == ()

    def test_rejects_empty_name(self) -> None:
        with pytest.raises(ConfigError, match="name cannot be empty"):
            EndpointConfig(name="", url="https://example.com")

    def test_accepts_malformed_url(self) -> None:
        """Malformed URLs are reported per probe, not at load time."""
        endpoint = EndpointConfig(name="Broken", url="not a url")
        assert endpoint.url == "not a url"

    def test_rejects_empty_header_name(self) -> None:
        with pytest.raises(ConfigError, match="Header name"):
            Header(name="", value="x")


class TestConfig:
    """Tests for Config container."""

    def test_rejects_no_endpoints(self) -> None:
        with pytest.raises(ConfigError, match="At least one endpoint"):
            Config(timings=TimingConfig(1, 1), endpoints=[])


class TestLoadConfig:
    """Tests for load_config function."""

    def test_loads_json_config(self, config_dir: Path, valid_config_content: str) -> None:
        config = load_config(_write(config_dir, valid_config_content))

        assert config.timings == TimingConfig(interval_seconds=5, run_duration_hours=2)
        assert [e.name for e in config.endpoints] == ["Example", "Private"]

    def test_keeps_duplicate_headers_in_order(self, config_dir: Path, valid_config_content: str) -> None:
        config = load_config(_write(config_dir, valid_config_content))

        assert config.endpoints[0].headers == (
            Header(name="X-Trace-Id", value="a"),
            Header(name="X-Trace-Id", value="b"),
        )

    def test_empty_credentials_mean_no_basic_auth(self, config_dir: Path, valid_config_content: str) -> None:
        config = load_config(_write(config_dir, valid_config_content))

        assert config.endpoints[0].basic_auth is None
        assert config.endpoints[1].basic_auth == BasicAuth(username="admin", password="")

    def test_method_is_upper_cased(self, config_dir: Path, valid_config_content: str) -> None:
        config = load_config(_write(config_dir, valid_config_content))
        assert config.endpoints[1].method == "POST"

    def test_missing_method_defaults_to_get(self, config_dir: Path) -> None:
        content = """timings:
  intervalSeconds: 1
  runDurationHours: 1
endpoints:
  - name: Example
    url: https://example.com
"""
        config = load_config(_write(config_dir, content, "config.yaml"))
        assert config.endpoints[0].method == "GET"

    def test_rejects_missing_file(self, config_dir: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_config(str(config_dir / "missing.json"))

    def test_rejects_invalid_syntax(self, config_dir: Path) -> None:
        with pytest.raises(ConfigError, match="Failed to parse"):
            load_config(_write(config_dir, '{"timings": [unclosed'))

    def test_rejects_empty_file(self, config_dir: Path) -> None:
        with pytest.raises(ConfigError, match="empty"):
            load_config(_write(config_dir, ""))

    def test_rejects_non_dictionary(self, config_dir: Path) -> None:
        with pytest.raises(ConfigError, match="must be a dictionary"):
            load_config(_write(config_dir, "[1, 2, 3]"))

    def test_rejects_no_endpoints_and_zero_timings(self, config_dir: Path) -> None:
        content = '{"timings": {"intervalSeconds": 0, "runDurationHours": 0}, "endpoints": []}'
        with pytest.raises(ConfigError):
            load_config(_write(config_dir, content))

    def test_rejects_missing_timings(self, config_dir: Path) -> None:
        content = '{"endpoints": [{"name": "A", "url": "https://example.com"}]}'
        with pytest.raises(ConfigError, match="timings"):
            load_config(_write(config_dir, content))

    def test_rejects_endpoint_without_name(self, config_dir: Path) -> None:
        content = '{"timings": {"intervalSeconds": 1, "runDurationHours": 1}, "endpoints": [{"url": "https://a"}]}'
        with pytest.raises(ConfigError, match="missing 'name'"):
            load_config(_write(config_dir, content))

    def test_rejects_non_integer_timings(self, config_dir: Path) -> None:
        content = '{"timings": {"intervalSeconds": "soon", "runDurationHours": 1}, "endpoints": []}'
        with pytest.raises(ConfigError, match="integers"):
            load_config(_write(config_dir, content))

    @pytest.mark.parametrize("value", ["2.5", "true", '"7"'])
    def test_rejects_coercible_timings(self, config_dir: Path, value: str) -> None:
        """Floats, booleans and numeric strings are not silently truncated."""
        content = (
            f'{{"timings": {{"intervalSeconds": {value}, "runDurationHours": 1}},'
            ' "endpoints": [{"name": "A", "url": "https://a"}]}'
        )
        with pytest.raises(ConfigError, match="'intervalSeconds'"):
            load_config(_write(config_dir, content))

    def test_rejects_headers_not_a_list(self, config_dir: Path) -> None:
        content = (
            '{"timings": {"intervalSeconds": 1, "runDurationHours": 1},'
            ' "endpoints": [{"name": "A", "url": "https://a", "headers": {"X": "1"}}]}'
        )
        with pytest.raises(ConfigError, match="'headers' must be a list"):
            load_config(_write(config_dir, content))


class TestEnvOverrides:
    """Tests for environment variable overrides."""

    def test_overrides_interval(
        self, config_dir: Path, valid_config_content: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("LATENCYMON_INTERVAL_SECONDS", "30")
        config = load_config(_write(config_dir, valid_config_content))
        assert config.timings.interval_seconds == 30

    def test_overrides_duration_without_timings_section(
        self, config_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("LATENCYMON_INTERVAL_SECONDS", "10")
        monkeypatch.setenv("LATENCYMON_RUN_DURATION_HOURS", "4")
        content = '{"endpoints": [{"name": "A", "url": "https://example.com"}]}'

        config = load_config(_write(config_dir, content))

        assert config.timings == TimingConfig(interval_seconds=10, run_duration_hours=4)

    def test_rejects_non_integer_override(
        self, config_dir: Path, valid_config_content: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("LATENCYMON_RUN_DURATION_HOURS", "forever")
        with pytest.raises(ConfigError, match="LATENCYMON_RUN_DURATION_HOURS"):
            load_config(_write(config_dir, valid_config_content))
