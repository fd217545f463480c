"""Read the recent part of a PostgreSQL log file.

Reading goes through three steps:

1. :func:`locate_window` scans the file backward, block by block, until it
   finds a block starting before the time window.
2. :func:`iter_lines` splits the remaining text on prefix matches, and
   :func:`assemble_entries` gathers continuation lines into :class:`LogEntry`
   objects.
3. :func:`~pgcollect.log.facts.classify` extracts facts from each entry.
"""

from __future__ import annotations

import logging
import os
import re
from datetime import datetime, timedelta, timezone
from typing import (
    IO,
    Any,
    Iterable,
    Iterator,
    List,
    Mapping,
    NamedTuple,
    Optional,
    Tuple,
)

from ..errors import LogError, LogReadError, TimestampError
from .facts import Results, classify
from .prefix import PrefixPattern

logger = logging.getLogger(__name__)

BLOCK_SIZE = 4096

# Severities starting a new entry. Other levels like DETAIL or HINT continue
# the current entry.
SEVERITIES = frozenset(
    ["DEBUG", "LOG", "INFO", "NOTICE", "WARNING", "ERROR", "FATAL", "PANIC"]
)

_level_re = re.compile(r"^([A-Z]+):\s+")


class LogLine(NamedTuple):
    timestamp: datetime
    user: str
    database: str
    level: str
    text: str


class LogEntry:
    """A log message, possibly spanning several lines.

    .. attribute:: line

        Text of the starting line, without prefix nor severity.

    .. attribute:: extra

        List of ``(level, line)`` of continuation lines.
    """

    __slots__ = ("timestamp", "user", "database", "level", "line", "extra")

    def __init__(
        self,
        timestamp: datetime,
        user: str,
        database: str,
        level: str,
        line: str,
        extra: Optional[List[Tuple[str, str]]] = None,
    ) -> None:
        self.timestamp = timestamp
        self.user = user
        self.database = database
        self.level = level
        self.line = line
        self.extra = extra or []

    @classmethod
    def from_line(cls, line: LogLine) -> "LogEntry":
        return cls(line.timestamp, line.user, line.database, line.level, line.text)

    def __repr__(self) -> str:
        return "<%s %s: %.32s...>" % (
            self.__class__.__name__,
            self.level,
            self.line.replace("\n", ""),
        )

    def get(self, level: str) -> str:
        """Returns the first continuation line of ``level`` or an empty string."""
        for extra_level, line in self.extra:
            if extra_level == level:
                return line
        return ""

    @property
    def text(self) -> str:
        return "\n".join([self.line] + [line for _, line in self.extra])


def locate_window(
    fo: IO[bytes],
    pattern: PrefixPattern,
    start: datetime,
    length: int,
    blocksize: int = BLOCK_SIZE,
) -> int:
    """Find an offset in ``fo`` at or before the first line logged at ``start``.

    Blocks of ``blocksize`` bytes are read from the end of the file, moving
    backward until the first timestamp of a block is older than ``start``.
    Offset ``0`` is returned if no such block exists.

    :raises OSError: on seek or read failure.
    :raises LogReadError: if a block is shorter than expected.
    """
    offset = max(length - blocksize, 0)
    while True:
        fo.seek(offset)
        size = min(blocksize, length - offset)
        block = fo.read(size)
        if len(block) != size:
            raise LogReadError(
                "short read at offset %d: %d bytes instead of %d"
                % (offset, len(block), size)
            )
        try:
            timestamp = pattern.first_timestamp(block.decode("utf-8", "replace"))
        except TimestampError as e:
            logger.debug("Ignoring block at %d: %s.", offset, e)
            timestamp = None
        if timestamp is not None and timestamp < start:
            return offset
        if offset == 0:
            return offset
        offset = max(offset - blocksize, 0)


def iter_lines(text: str, pattern: PrefixPattern, start: datetime) -> Iterator[LogLine]:
    """Yield :class:`LogLine` logged since ``start``.

    A line spans from one prefix match to the next one, thus includes raw
    continuation lines. Iteration stops on a malformed timestamp.
    """
    match = pattern.search(text)
    while match is not None:
        try:
            timestamp, user, database = pattern.fields(match)
        except TimestampError as e:
            logger.debug("Stop reading log: %s.", e)
            return
        end = match.end()
        # An empty match must not be found again.
        pos = end if end > match.start() else end + 1
        next_match = pattern.search(text, pos) if pos <= len(text) else None
        line = text[end : next_match.start() if next_match else len(text)]
        match = next_match

        if timestamp is None or timestamp < start:
            continue
        if line.endswith("\n"):
            line = line[:-1]
        level = ""
        level_match = _level_re.match(line)
        if level_match:
            level = level_match.group(1)
            line = line[level_match.end() :]
        yield LogLine(timestamp, user, database, level, line)


def step(
    current: Optional[LogEntry], line: LogLine
) -> Tuple[Optional[LogEntry], Optional[LogEntry]]:
    """Feed ``line`` to the ``current`` entry.

    :returns: A tuple of the sealed entry, if ``line`` starts a new entry, and
        the new current entry.
    """
    if line.level in SEVERITIES:
        return current, LogEntry.from_line(line)
    if current is not None:
        current.extra.append((line.level, line.text))
    return None, current


def assemble_entries(lines: Iterable[LogLine]) -> Iterator[LogEntry]:
    current: Optional[LogEntry] = None
    for line in lines:
        sealed, current = step(current, line)
        if sealed is not None:
            yield sealed
    if current is not None:
        yield current


def read_log_file(
    filename: str,
    pattern: PrefixPattern,
    span: int,
    now: Optional[datetime] = None,
) -> Results:
    """Extract facts logged in ``filename`` during the last ``span`` minutes.

    :param now: Aware datetime ending the window, defaults to current time.
    :raises LogReadError: if the file can't be read.
    """
    start = (now or datetime.now(timezone.utc)) - timedelta(minutes=span)
    results = Results()
    try:
        with open(filename, "rb") as fo:
            length = fo.seek(0, os.SEEK_END)
            if length <= 0:
                return results
            offset = locate_window(fo, pattern, start, length)
            logger.debug("Reading %s from offset %d/%d.", filename, offset, length)
            fo.seek(offset)
            data = fo.read(length - offset)
    except OSError as e:
        raise LogReadError("%s: %s" % (filename, e)) from e
    if len(data) != length - offset:
        raise LogReadError("%s: file truncated while reading" % filename)

    lines = iter_lines(data.decode("utf-8", "replace"), pattern, start)
    for entry in assemble_entries(lines):
        classify(entry, results)
    return results


def read_log(
    filename: str,
    settings: Mapping[str, Any],
    results: Results,
    span: int,
    now: Optional[datetime] = None,
) -> bool:
    """Collect facts from a log file into ``results``.

    Failures are logged, never raised. Facts are added only if the whole read
    succeeds.

    :param settings: PostgreSQL settings by name. Values are either strings or
        objects with a ``setting`` attribute.
    :param span: Window size in minutes.
    :returns: ``True`` if the log file has been read.
    """
    try:
        value = settings["log_line_prefix"]
    except KeyError:
        logger.warning("failed to get log_line_prefix setting, cannot read log file")
        return False
    log_line_prefix = getattr(value, "setting", value)

    try:
        pattern = PrefixPattern.from_configuration(log_line_prefix)
        collected = read_log_file(filename, pattern, span, now=now)
    except LogError as e:
        logger.warning("%s", e)
        return False

    logger.debug("Collected %r from %s.", collected, filename)
    results.extend(collected)
    return True
