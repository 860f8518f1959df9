from __future__ import annotations

from datetime import datetime, timezone
from typing import Union
import math

from .errors import MalformedTimestamp

# ISO-8601 (str), epoch em segundos (int/float) ou datetime
Timestamp = Union[str, int, float, datetime]


def parse_epoch(value: Timestamp) -> float:
    """
    Normaliza um timestamp para epoch em segundos (float, UTC).
    Datetime sem tzinfo é tratado como UTC.
    """
    if isinstance(value, bool):
        raise MalformedTimestamp(value)

    if isinstance(value, (int, float)):
        x = float(value)
        if math.isnan(x) or math.isinf(x):
            raise MalformedTimestamp(value)
        return x

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        s = value.strip()
        if not s:
            raise MalformedTimestamp(value)
        # fromisoformat só aceita "Z" a partir do 3.11
        if s.endswith("Z") or s.endswith("z"):
            s = s[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s)
        except ValueError as e:
            raise MalformedTimestamp(value) from e
    else:
        raise MalformedTimestamp(value)

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def minutes_between(start_epoch: float, end_epoch: float) -> int:
    return round_half_up((end_epoch - start_epoch) / 60.0)


def fmt_epoch(epoch: float) -> str:
    dt = datetime.fromtimestamp(epoch, tz=timezone.utc)
    return dt.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]


def iso_epoch(epoch: float) -> str:
    return datetime.fromtimestamp(epoch, tz=timezone.utc).isoformat()
