"""latencymon - periodic HTTP latency prober."""

import argparse
import logging
import signal
import sys
from typing import NoReturn

__version__ = "0.1.0"

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool = False) -> None:
    """Configure diagnostic logging.

    Diagnostics go to stderr so they never interleave with the result table
    printed on stdout.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def _fatal(message: str) -> NoReturn:
    print(message)
    sys.exit(1)


def _cmd_run(args: argparse.Namespace) -> None:
    """Execute the run command - probe all endpoints until the run duration elapses."""
    _setup_logging(args.verbose)

    # Import here to allow logging setup first
    from .config import ConfigError, load_config
    from .probe import measure_endpoint
    from .scheduler import Scheduler
    from .sinks import ConsoleSink, LogSink, SinkError, announce

    console = ConsoleSink()

    # 1. Load configuration
    console.write(f"Reading config from {args.config}")
    try:
        config = load_config(args.config)
    except ConfigError as e:
        _fatal(f"Unable to load config from {args.config}: {e}. Exiting!")

    # 2. Open the log file
    try:
        log_sink = LogSink.open(args.logs_dir)
    except SinkError as e:
        _fatal(f"{e}. Exiting!")
    console.write(f"Logging to file - {log_sink.path}")

    # 3. Summarize what will run
    for i, endpoint in enumerate(config.endpoints, start=1):
        announce(f'Endpoint {i} "{endpoint.name}"\t {endpoint.url}', log_sink, console)
    announce(
        f"Using config as {config.timings.interval_seconds} seconds interval "
        f"and {config.timings.run_duration_hours} hour run duration",
        log_sink,
        console,
    )
    announce("Starting up ... ", log_sink, console)

    scheduler = Scheduler(
        config.endpoints,
        interval=config.timings.interval_seconds,
        run_duration=config.timings.run_duration_seconds,
        probe=lambda endpoint: measure_endpoint(endpoint, log_sink),
        console=console,
    )

    # 4. SIGTERM/SIGINT end the run early
    def _handle_shutdown(signum: int, frame: object) -> None:
        logger.info("Received %s, initiating shutdown...", signal.Signals(signum).name)
        scheduler.request_stop()

    signal.signal(signal.SIGTERM, _handle_shutdown)
    signal.signal(signal.SIGINT, _handle_shutdown)

    # 5. Tick until the deadline
    try:
        scheduler.start()
        announce(f"Started up {len(config.endpoints)} pollers ...", log_sink, console)
        scheduler.wait()
    finally:
        scheduler.stop()
        announce("Shutting down ... ", log_sink, console)
        log_sink.close()


def _cmd_check(args: argparse.Namespace) -> None:
    """Execute the check command - probe every endpoint once."""
    from concurrent.futures import ThreadPoolExecutor, as_completed

    from .config import ConfigError, load_config
    from .probe import check_endpoint, format_display
    from .sinks import ConsoleSink

    _setup_logging(args.verbose)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        _fatal(f"Error: {e}")

    console = ConsoleSink()
    failures = 0

    with ThreadPoolExecutor(max_workers=len(config.endpoints)) as executor:
        futures = [executor.submit(check_endpoint, endpoint) for endpoint in config.endpoints]
        for future in as_completed(futures):
            result = future.result()
            if not result.is_success:
                failures += 1
            console.write_row(format_display(result))

    print(f"\nResult: {len(futures) - failures}/{len(futures)} endpoints answered")

    if failures:
        sys.exit(1)


def _add_config_argument(parser: argparse.ArgumentParser) -> None:
    from .config import DEFAULT_CONFIG_PATH

    parser.add_argument(
        "-c", "--config",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the latencymon package."""
    from .config import DEFAULT_LOGS_DIR

    parser = argparse.ArgumentParser(
        description="latencymon - periodic HTTP latency prober"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"latencymon {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # Run subcommand (default behavior)
    run_parser = subparsers.add_parser(
        "run",
        help="Probe endpoints on the configured interval (default)",
    )
    _add_config_argument(run_parser)
    run_parser.add_argument(
        "--logs-dir",
        default=DEFAULT_LOGS_DIR,
        help=f"Directory for the latency log file (default: {DEFAULT_LOGS_DIR})",
    )
    run_parser.set_defaults(func=_cmd_run)

    # Check subcommand
    check_parser = subparsers.add_parser(
        "check",
        help="Probe every endpoint once and print the results",
    )
    _add_config_argument(check_parser)
    check_parser.set_defaults(func=_cmd_check)

    args = parser.parse_args(argv)

    # Default to 'run' if no command specified
    if args.command is None:
        args = run_parser.parse_args([])

    args.func(args)
