from __future__ import annotations

import re
from datetime import datetime
from typing import FrozenSet, List, NamedTuple, Optional, Tuple

from ..errors import ConfigurationError, PatternError
from .timestamps import decode_timestamp

# Token kinds produced by tokenize().
LITERAL = "literal"
TIMESTAMP = "timestamp"
FIELD = "field"
PROCESS_START = "process_start"
OPTIONAL = "optional"
OTHER = "other"


class Token(NamedTuple):
    kind: str
    value: str = ""


TIMESTAMP_DIRECTIVES = "tmn"
FIELD_DIRECTIVES = "ud"

_datetime_pat = r"\d{4}-\d{1,2}-\d{1,2} \d{2}:\d{2}:\d{2}"
_name_pat = r"[A-Za-z0-9_.\[\]-]{1,64}"
# cf.
# https://www.postgresql.org/docs/current/static/runtime-config-logging.html#GUC-LOG-LINE-PREFIX
_directive_pat = dict(
    # Time stamp without milliseconds
    t=r"(?P<t>" + _datetime_pat + r" \S+)",
    # Time stamp with milliseconds
    m=r"(?P<m>" + _datetime_pat + r"\.\d+ \S+)",
    # Time stamp with milliseconds (as a Unix epoch)
    n=r"(?P<n>\d+\.\d+)",
    # User name
    u=r"(?P<u>" + _name_pat + ")",
    # Database name
    d=r"(?P<d>" + _name_pat + ")",
)
# Process start time stamp, matched but not captured.
_process_start_pat = _datetime_pat + r" \S+"
# Any other escape: optional sequence of non-whitespace characters.
_other_pat = r"(\S+)?"


def tokenize(log_line_prefix: str) -> List[Token]:
    """Split ``log_line_prefix`` into a list of :class:`Token`."""
    tokens: List[Token] = []
    literal: List[str] = []

    def flush() -> None:
        if literal:
            tokens.append(Token(LITERAL, "".join(literal)))
            del literal[:]

    chars = iter(log_line_prefix)
    for char in chars:
        if char != "%":
            literal.append(char)
            continue
        directive = next(chars, None)
        if directive is None:
            # PostgreSQL ignores a trailing %.
            break
        flush()
        if directive in TIMESTAMP_DIRECTIVES:
            tokens.append(Token(TIMESTAMP, directive))
        elif directive in FIELD_DIRECTIVES:
            tokens.append(Token(FIELD, directive))
        elif directive == "s":
            tokens.append(Token(PROCESS_START))
        elif directive == "q":
            tokens.append(Token(OPTIONAL))
        else:
            tokens.append(Token(OTHER, directive))
    flush()
    return tokens


def render(tokens: List[Token]) -> str:
    """Build a regular expression pattern string from prefix tokens."""
    segments = []
    optional = False
    for token in tokens:
        if token.kind == LITERAL:
            segments.append(re.escape(token.value))
        elif token.kind in (TIMESTAMP, FIELD):
            segments.append(_directive_pat[token.value])
        elif token.kind == PROCESS_START:
            segments.append(_process_start_pat)
        elif token.kind == OPTIONAL:
            # Rest of the prefix is optional, closed once at the end.
            segments.append(r"(?:")
            optional = True
        else:
            segments.append(_other_pat)
    if optional:
        segments.append(r")?")
    return "".join(segments)


class PrefixPattern:
    """Match PostgreSQL log line prefixes built from ``log_line_prefix``.

    .. automethod:: from_configuration
    """

    @classmethod
    def from_configuration(cls, log_line_prefix: str) -> "PrefixPattern":
        """Factory from log_line_prefix

        :param log_line_prefix: ``log_line_prefix`` PostgreSQL setting.
        :raises ConfigurationError: if the prefix has no timestamp escape.
        :raises PatternError: if the resulting pattern does not compile.
        """
        tokens = tokenize(log_line_prefix)
        timestamps = frozenset(t.value for t in tokens if t.kind == TIMESTAMP)
        if not timestamps:
            raise ConfigurationError(
                "no timestamp escape sequence was found in log_line_prefix"
            )
        pattern = render(tokens)
        try:
            re_ = re.compile(r"^" + pattern, re.MULTILINE)
        except re.error as e:
            raise PatternError(pattern, str(e)) from e
        return cls(re_, timestamps, log_line_prefix)

    def __init__(
        self,
        re_: re.Pattern[str],
        timestamps: FrozenSet[str],
        prefix_fmt: Optional[str] = None,
    ) -> None:
        self.re_ = re_
        self.timestamps = timestamps
        self.prefix_fmt = prefix_fmt

    def __repr__(self) -> str:
        return "<%s '%s'>" % (self.__class__.__name__, self.prefix_fmt)

    def search(self, text: str, pos: int = 0) -> Optional[re.Match[str]]:
        return self.re_.search(text, pos)

    def fields(self, match: re.Match[str]) -> Tuple[Optional[datetime], str, str]:
        # Returns timestamp, user and database of a prefix match. Raises
        # TimestampError if the timestamp is malformed.
        groups = match.groupdict()
        return (
            decode_timestamp(groups),
            groups.get("u") or "",
            groups.get("d") or "",
        )

    def first_timestamp(self, text: str) -> Optional[datetime]:
        match = self.search(text)
        if match is None:
            return None
        return self.fields(match)[0]
