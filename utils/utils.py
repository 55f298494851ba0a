import json
import logging
import time
from datetime import date, datetime, timedelta, tzinfo

from utils.constants import DECK_PATH_SEPARATOR

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def parse_tags(raw: str | None) -> list[str]:
    """
    Decode a stored tag list. Anything that is not a JSON list of strings
    degrades to [] so a bad tags column never hides the card itself.
    """
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Unparsable tag list %r, using []", raw)
        return []
    if not isinstance(parsed, list):
        logger.warning("Tag list is not a list: %r, using []", raw)
        return []
    return [tag for tag in parsed if isinstance(tag, str)]


def dump_tags(tags: list[str] | None) -> str:
    return json.dumps(list(tags or []), ensure_ascii=False)


def clean_name(name: str | None) -> str:
    return (name or '').strip()


def split_deck_path(path: str | None) -> list[str]:
    """
    'Biology / Cells//Mitosis/' -> ['Biology', 'Cells', 'Mitosis']
    """
    segments = (path or '').split(DECK_PATH_SEPARATOR)
    return [s.strip() for s in segments if s.strip()]


def join_deck_path(base: str, name: str) -> str:
    return f"{base.rstrip(DECK_PATH_SEPARATOR)}{DECK_PATH_SEPARATOR}{name}"


def local_day(ts_ms: int, tz: tzinfo | None) -> date:
    """Calendar day of a UTC ms timestamp in the given timezone (system local time when None)."""
    return datetime.fromtimestamp(ts_ms / 1000, tz).date()


def start_of_local_day(ts_ms: int, tz: tzinfo | None) -> int:
    """Local midnight (as UTC ms) of the day containing `ts_ms`."""
    midnight = datetime.combine(local_day(ts_ms, tz), datetime.min.time(), tzinfo=tz)
    return int(midnight.timestamp() * 1000)


def day_start_ms(day: date, tz: tzinfo | None) -> int:
    return int(datetime.combine(day, datetime.min.time(), tzinfo=tz).timestamp() * 1000)


def days_after(day: date, count: int) -> list[date]:
    return [day + timedelta(days=d) for d in range(1, count + 1)]
