"""Tick scheduler that fans probes out across all endpoints."""

import logging
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from enum import Enum

from .config import EndpointConfig
from .sinks import ConsoleSink

logger = logging.getLogger(__name__)

# Worker threads per endpoint. Probes are not awaited between ticks, so
# several generations may be in flight when probes outlast the interval.
DEFAULT_WORKERS_PER_ENDPOINT = 8

ProbeFunc = Callable[[EndpointConfig], str]


class SchedulerError(Exception):
    """Raised on invalid scheduler parameters or lifecycle misuse."""

    pass


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class Scheduler:
    """Fire one probe per endpoint on every tick until the run deadline.

    Each tick writes a blank separator to the console and submits the probes
    to a thread pool without waiting for them. Ticks are never delayed by slow
    probes and a failed probe never affects later ticks. Display lines reach
    the console in completion order.

    Stopping halts future ticks only; probes already in flight are neither
    awaited nor cancelled. A stopped scheduler cannot be restarted.

    Example:
        scheduler = Scheduler(endpoints, interval=5, run_duration=3600,
                              probe=measure, console=ConsoleSink())
        scheduler.run()
    """

    def __init__(
        self,
        endpoints: Sequence[EndpointConfig],
        interval: float,
        run_duration: float,
        probe: ProbeFunc,
        console: ConsoleSink,
        max_workers: int | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            endpoints: Endpoints to probe on every tick.
            interval: Seconds between ticks.
            run_duration: Seconds after which ticking stops.
            probe: Callable probing one endpoint and returning its display line.
            console: Sink receiving tick separators and display lines.
            max_workers: Thread pool size (default scales with endpoint count).
        """
        if not endpoints:
            raise SchedulerError("No endpoints to probe")
        if interval <= 0:
            raise SchedulerError(f"Interval must be positive (got {interval})")
        if run_duration <= 0:
            raise SchedulerError(f"Run duration must be positive (got {run_duration})")

        self._endpoints = tuple(endpoints)
        self._interval = interval
        self._run_duration = run_duration
        self._probe = probe
        self._console = console
        self._max_workers = max_workers or len(self._endpoints) * DEFAULT_WORKERS_PER_ENDPOINT

        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._state = SchedulerState.IDLE
        self._thread: threading.Thread | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._tick_count = 0
        self._dispatched_count = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def tick_count(self) -> int:
        """Number of ticks fired so far."""
        return self._tick_count

    @property
    def dispatched_count(self) -> int:
        """Number of probe invocations submitted so far."""
        return self._dispatched_count

    def start(self) -> None:
        """Arm the ticker. The first tick fires one interval from now.

        Raises:
            SchedulerError: If the scheduler was already started.
        """
        with self._lock:
            if self._state is not SchedulerState.IDLE:
                raise SchedulerError(f"Scheduler cannot be started from state '{self._state.value}'")

            self._executor = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="probe")
            self._thread = threading.Thread(target=self._run_loop, daemon=True, name="scheduler-ticks")
            self._state = SchedulerState.RUNNING
            self._thread.start()

        logger.info(
            "Scheduler started: %d endpoints every %ss for %ss",
            len(self._endpoints),
            self._interval,
            self._run_duration,
        )

    def request_stop(self) -> None:
        """Ask a running scheduler to stop before its deadline (thread/signal safe)."""
        self._stop_event.set()

    def wait(self) -> bool:
        """Block until the run deadline elapses or a stop is requested.

        Returns:
            True if a stop was requested before the deadline.
        """
        return self._stop_event.wait(timeout=self._run_duration)

    def run(self) -> None:
        """Start, wait for the deadline, then stop."""
        self.start()
        try:
            if self.wait():
                logger.info("Stop requested before the run deadline")
        finally:
            self.stop()

    def stop(self, timeout: float = 10.0) -> None:
        """Stop ticking. In-flight probes keep running to completion.

        Args:
            timeout: Maximum seconds to wait for the tick thread to exit.
        """
        with self._lock:
            if self._state is SchedulerState.STOPPED:
                return
            if self._state is SchedulerState.IDLE:
                self._state = SchedulerState.STOPPED
                return

            self._stop_event.set()
            if self._thread is not None:
                self._thread.join(timeout=timeout)
                if self._thread.is_alive():
                    logger.warning("Tick thread did not stop within timeout")
            if self._executor is not None:
                self._executor.shutdown(wait=False)
            self._state = SchedulerState.STOPPED

        logger.info("Scheduler stopped after %d ticks", self._tick_count)

    def _run_loop(self) -> None:
        """Tick loop - runs in background thread."""
        logger.debug("Tick loop started")
        next_tick = time.monotonic() + self._interval

        while not self._stop_event.wait(timeout=max(0.0, next_tick - time.monotonic())):
            self._tick()
            next_tick += self._interval

            now = time.monotonic()
            if next_tick <= now:
                # Missed ticks (e.g. the host was suspended) are dropped.
                missed = int((now - next_tick) // self._interval) + 1
                next_tick += missed * self._interval
                logger.debug("Dropped %d missed ticks", missed)

        logger.debug("Tick loop exited")

    def _tick(self) -> None:
        self._console.blank()
        for endpoint in self._endpoints:
            try:
                self._executor.submit(self._probe_one, endpoint)
            except RuntimeError:
                # stop() gave up waiting for this thread and closed the pool.
                logger.debug("Probe pool is shut down, dropping the rest of this tick")
                return
            self._dispatched_count += 1
        self._tick_count += 1

    def _probe_one(self, endpoint: EndpointConfig) -> None:
        try:
            line = self._probe(endpoint)
        except Exception:
            logger.exception("Probe of %s raised unexpectedly", endpoint.name)
            return
        self._console.write_row(line)
