"""Parsing of provider Retry-After hints into absolute retry times."""

from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import List, Mapping, Optional, Sequence, Union

HeaderValue = Union[str, Sequence[str]]


class ParseError(Exception):
    """Raised when a response carries no usable Retry-After value."""
    pass


def _header_values(headers: Mapping[str, HeaderValue], name: str) -> List[str]:
    for key, value in headers.items():
        if key.lower() != name.lower():
            continue
        if isinstance(value, str):
            return [value]
        return list(value)
    return []


def parse_retry_after(
    headers: Optional[Mapping[str, HeaderValue]],
    now: Optional[datetime] = None,
) -> datetime:
    """
    Return the earliest time a retry may succeed, as naive UTC.

    The header holds either delay-seconds ("600") or an HTTP-date. When the
    header is repeated only the first value counts.
    """
    if headers is None:
        raise ParseError("no response headers to parse Retry-After from")
    if now is None:
        now = datetime.utcnow()

    values = _header_values(headers, "Retry-After")
    if not values or not values[0].strip():
        raise ParseError("Retry-After header is missing")

    value = values[0].strip()
    if value.isdigit():
        return now + timedelta(seconds=int(value))

    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError) as e:
        raise ParseError(f"cannot parse Retry-After value {value!r}") from e
    if parsed is None:
        raise ParseError(f"cannot parse Retry-After value {value!r}")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
