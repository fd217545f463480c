from __future__ import annotations


class LogError(Exception):
    """Base class of errors skipping a log read."""


class LogReadError(LogError):
    """Log file can't be opened, seeked or read in full."""


class ConfigurationError(LogError):
    """``log_line_prefix`` is missing or unusable."""


class PatternError(ConfigurationError):
    def __init__(self, pattern: str, message: str) -> None:
        self.message = message
        super().__init__(self.message)
        self.pattern = pattern

    def __repr__(self) -> str:
        return "<%s %.32s>" % (self.__class__.__name__, self.message)

    def __str__(self) -> str:
        return "Bad log_line_prefix pattern '{:.64}': {}".format(
            self.pattern,
            self.message,
        )


class TimestampError(ValueError):
    def __init__(self, raw: str, message: str) -> None:
        self.message = message
        super().__init__(self.message)
        self.raw = raw

    def __repr__(self) -> str:
        return "<%s %.32s>" % (self.__class__.__name__, self.raw)

    def __str__(self) -> str:
        return "{} in log line: {}".format(self.message, self.raw)
