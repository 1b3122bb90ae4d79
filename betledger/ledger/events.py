"""
Event resolver: attach legs to a canonical sporting event.

Free-text match names are deduplicated per calendar day with trigram
similarity (the same measure as PostgreSQL's pg_trgm). A duplicate event is
an acceptable miss; merging two different fixtures is not, which is what the
threshold guards against.
"""
import re
from datetime import date, datetime, timezone
from typing import Optional, Set, Union

from betledger.core.protocols import EventCatalog
from betledger.exceptions import ValidationError
from betledger.utils.observability import Logger

logger = Logger(__name__)

DEFAULT_THRESHOLD = 0.4

_WORD = re.compile(r"[^\W_]+", re.UNICODE)


def trigrams(text: str) -> Set[str]:
    """
    Trigram set of a string.

    Each alphanumeric word is lower-cased and padded with two spaces in front
    and one behind, so "Real" yields "  r", " re", "rea", "eal", "al ".
    """
    grams = set()
    for word in _WORD.findall(text.lower()):
        padded = f"  {word} "
        for i in range(len(padded) - 2):
            grams.add(padded[i:i + 3])
    return grams


def similarity(a: str, b: str) -> float:
    """Shared trigrams over all distinct trigrams, in [0, 1]."""
    ta, tb = trigrams(a), trigrams(b)
    if not ta or not tb:
        return 0.0
    return len(ta & tb) / len(ta | tb)


def utc_day(moment: datetime) -> date:
    """Calendar day of a datetime; offset-aware values are moved to UTC first."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.date()


def to_event_date(value: Union[date, datetime, str]) -> date:
    """UTC calendar day of an event; datetimes and ISO strings are truncated."""
    if isinstance(value, datetime):
        return utc_day(value)
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return utc_day(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
        except ValueError:
            pass
    raise ValidationError("Event date is invalid.")


class EventResolver:
    """
    Find-or-create for events.

    Runs against whatever catalog it is handed, normally the event repository
    of the caller's unit of work, and never opens a transaction of its own.
    """

    def __init__(self, threshold: float = DEFAULT_THRESHOLD):
        self.threshold = threshold

    def resolve(
        self,
        catalog: EventCatalog,
        name: str,
        event_date: Union[date, datetime, str],
        sport: Optional[str] = None,
    ) -> str:
        """
        Id of the best-matching event on the same day, or of a new one.

        Args:
            catalog: Event store to search and insert into
            name: Free-text match name
            event_date: Day (or timestamp) of the match
            sport: Optional sport, only used when creating

        Returns:
            Event id
        """
        trimmed = (name or "").strip()
        if not trimmed:
            raise ValidationError("Event name is required.")
        day = to_event_date(event_date)

        best_id, best_score = None, None
        for event in catalog.find_on_date(day):
            score = similarity(event.name, trimmed)
            if score > self.threshold and (best_score is None or score > best_score):
                best_id, best_score = event.id, score

        if best_id is not None:
            logger.log_event("event_matched", event_id=best_id, name=trimmed, score=round(best_score, 3))
            return best_id

        sport = sport.strip() if sport and sport.strip() else None
        created = catalog.create(trimmed, day, sport)
        logger.log_event("event_created", event_id=created.id, name=trimmed, event_date=day.isoformat())
        return created.id
