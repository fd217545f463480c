import re
import time
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional

from ..errors import TimestampError

_datetime_re = re.compile(
    r"^(\d{4})-(\d{1,2})-(\d{1,2}) (\d{2}):(\d{2}):(\d{2})(?:\.(\d+))? (\S+)$"
)
_offset_re = re.compile(r"^([+-])(\d{2}):?(\d{2})?$")
_utc_names = ("UTC", "GMT", "Z")


def localize(naive: datetime, tzname: str) -> datetime:
    """Attach the zone named ``tzname`` to ``naive`` wall time.

    ``UTC`` and numeric offsets are explicit. Abbreviations of the host zone,
    like ``EST`` or ``CEST``, get the host zone offset. Other abbreviations
    carry no offset information and are taken as UTC.
    """
    if tzname in _utc_names:
        return naive.replace(tzinfo=timezone.utc)
    match = _offset_re.match(tzname)
    if match:
        sign, hours, minutes = match.groups()
        delta = timedelta(hours=int(hours), minutes=int(minutes or 0))
        if sign == "-":
            delta = -delta
        return naive.replace(tzinfo=timezone(delta))
    local = naive.astimezone()
    if local.tzname() == tzname:
        return local
    if tzname in time.tzname:
        # Wall time and abbreviation disagree on DST, trust the abbreviation.
        if time.daylight and tzname == time.tzname[1]:
            offset = -time.altzone
        else:
            offset = -time.timezone
        return naive.replace(tzinfo=timezone(timedelta(seconds=offset), tzname))
    return naive.replace(tzinfo=timezone.utc)


def parse_timestamp(raw: str) -> datetime:
    """Parse a ``%t`` or ``%m`` timestamp.

    :param raw: Text like ``2018-06-15 10:49:26.088 UTC``.
    :returns: A timezone-aware :class:`datetime.datetime`.
    :raises TimestampError: when ``raw`` is not a timestamp.
    """
    match = _datetime_re.match(raw)
    if not match:
        raise TimestampError(raw, "bad time format")
    year, month, day, hour, minute, second, fraction, tzname = match.groups()
    # datetime resolution stops at microseconds.
    microsecond = int((fraction or "0")[:6].ljust(6, "0"))
    try:
        naive = datetime(
            int(year),
            int(month),
            int(day),
            int(hour),
            int(minute),
            int(second),
            microsecond,
        )
        return localize(naive, tzname)
    except (OverflowError, OSError, ValueError) as e:
        raise TimestampError(raw, str(e)) from e


def parse_epoch(raw: str) -> datetime:
    """Parse a ``%n`` Unix epoch like ``1529072152.332``."""
    parts = raw.split(".")
    if len(parts) > 2:
        raise TimestampError(raw, "wrong %n format")
    seconds, fraction = parts[0], parts[1] if len(parts) == 2 else ""
    if not seconds.isdigit() or (fraction and not fraction.isdigit()):
        raise TimestampError(raw, "bad time format")
    nanoseconds = int(fraction[:9].ljust(9, "0")) if fraction else 0
    try:
        return datetime.fromtimestamp(int(seconds), tz=timezone.utc) + timedelta(
            microseconds=nanoseconds // 1000
        )
    except (OverflowError, OSError, ValueError) as e:
        raise TimestampError(raw, str(e)) from e


def decode_timestamp(groups: Mapping[str, Optional[str]]) -> Optional[datetime]:
    # Millisecond timestamp wins over plain timestamp, which wins over epoch.
    raw = groups.get("m")
    if raw:
        return parse_timestamp(raw)
    raw = groups.get("t")
    if raw:
        return parse_timestamp(raw)
    raw = groups.get("n")
    if raw:
        return parse_epoch(raw)
    return None
