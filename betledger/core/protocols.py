"""
Protocol definitions for the collaborators the ledger consumes.

Using Protocol allows duck typing while still providing type checking support.
"""
from datetime import date
from typing import List, Optional, Protocol, runtime_checkable

from betledger.models import Event


@runtime_checkable
class EventCatalog(Protocol):
    """
    Queryable catalog of sporting events.

    Implementations:
    - EventRepository (default): ``events`` table inside the current unit of work
    """

    def find_on_date(self, event_date: date) -> List[Event]:
        """
        Events scheduled on a calendar day.

        Args:
            event_date: Day to search

        Returns:
            Events on that day, oldest first
        """
        ...

    def create(self, name: str, event_date: date, sport: Optional[str] = None) -> Event:
        """
        Insert a new event.

        Args:
            name: Trimmed fixture name
            event_date: Calendar day of the fixture
            sport: Optional sport label

        Returns:
            The created event
        """
        ...
