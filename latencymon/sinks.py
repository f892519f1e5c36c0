"""Destinations for result and lifecycle lines.

Both sinks are created once at startup and handed to the components that
write to them. Each write is one whole line, so concurrent probe completions
never interleave within a line.
"""

import logging
import os
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import TextIO

LOG_FORMAT = "%(asctime)s %(message)s"
LOG_DATE_FORMAT = "%Y/%m/%d %H:%M:%S"

# Space between aligned console columns.
COLUMN_PADDING = 1
MIN_COLUMN_WIDTH = 2


class SinkError(Exception):
    """Raised when a sink cannot be opened."""

    pass


def log_file_name(now: datetime, pid: int) -> str:
    """Name of the per-process log file, e.g. latencies-18-October-PID_4242.log."""
    return f"latencies-{now.day}-{now.strftime('%B')}-PID_{pid}.log"


class LogSink:
    """Append-only text log backed by a dedicated, non-propagating logger."""

    def __init__(self, logger: logging.Logger, path: Path | None = None) -> None:
        self._logger = logger
        self.path = path

    @classmethod
    def open(cls, logs_dir: str, now: datetime | None = None, pid: int | None = None) -> "LogSink":
        """Create the log file for this process inside ``logs_dir``.

        Raises:
            SinkError: If the directory or the file cannot be created.
        """
        now = now or datetime.now()
        pid = pid if pid is not None else os.getpid()
        path = Path(logs_dir) / log_file_name(now, pid)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        except OSError as e:
            raise SinkError(f"Unable to create log file {path}: {e}")

        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        logger = logging.getLogger(f"latencymon.results.{path.stem}")
        logger.setLevel(logging.INFO)
        logger.propagate = False
        logger.addHandler(handler)
        return cls(logger, path)

    def write(self, line: str) -> None:
        self._logger.info(line)

    def close(self) -> None:
        """Flush and detach all handlers."""
        for handler in list(self._logger.handlers):
            handler.close()
            self._logger.removeHandler(handler)


class ConsoleSink:
    """Column-aligned console writer.

    Lines are split on tabs and every column is right-aligned to the widest
    cell seen so far in that column.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream if stream is not None else sys.stdout
        self._widths: list[int] = []
        self._lock = threading.Lock()

    def _align(self, line: str) -> str:
        cells = [cell.strip() for cell in line.split("\t")]
        if len(cells) == 1:
            return cells[0]

        for i, cell in enumerate(cells):
            width = max(len(cell), MIN_COLUMN_WIDTH)
            if i == len(self._widths):
                self._widths.append(width)
            elif width > self._widths[i]:
                self._widths[i] = width

        padding = " " * COLUMN_PADDING
        return padding.join(cell.rjust(self._widths[i]) for i, cell in enumerate(cells))

    def write(self, line: str) -> None:
        """Write a line as-is."""
        with self._lock:
            self._stream.write(line + "\n")
            self._stream.flush()

    def write_row(self, line: str) -> None:
        """Write a tab-separated line with its columns aligned."""
        with self._lock:
            self._stream.write(self._align(line) + "\n")
            self._stream.flush()

    def blank(self) -> None:
        """Write the empty separator line that starts each tick."""
        self.write("")


def announce(message: str, log_sink: LogSink | None, console: ConsoleSink) -> None:
    """Send a lifecycle message to both the log file and the console."""
    if log_sink is not None:
        log_sink.write(message)
    console.write(message)
