"""
Archive partition rule for the admin ticket tables.

Pure functions: the open/resolved split and its ordering are always derived
from the current ticket collection and never stored.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Tuple

from supportdesk.models.ticket import PRIORITY_ORDER, UNKNOWN_PRIORITY_RANK, Ticket

_NO_TIMESTAMP = datetime.max.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class ArchivePartition:
    open: Tuple[Ticket, ...] = ()
    resolved: Tuple[Ticket, ...] = ()


def _sort_key(ticket: Ticket):
    # Tickets without a creation time go after every dated ticket of the same rank
    return (
        PRIORITY_ORDER.get(ticket.priority, UNKNOWN_PRIORITY_RANK),
        ticket.created_at or _NO_TIMESTAMP,
    )


def sort_tickets(tickets: Iterable[Ticket]) -> List[Ticket]:
    """Most urgent first (Critical, High, Medium, Low, unknown), then oldest first."""
    return sorted(tickets, key=_sort_key)


def partition_tickets(tickets: Iterable[Ticket]) -> ArchivePartition:
    open_tickets = []
    resolved = []
    for ticket in tickets:
        if ticket.is_resolved:
            resolved.append(ticket)
        else:
            open_tickets.append(ticket)
    return ArchivePartition(
        open=tuple(sort_tickets(open_tickets)),
        resolved=tuple(sort_tickets(resolved)),
    )


def matches_search(ticket: Ticket, query: str) -> bool:
    """Admin search box: case-insensitive match on category or description."""
    if not query or not query.strip():
        return True
    needle = query.strip().lower()
    return needle in (ticket.category or "").lower() or needle in (ticket.description or "").lower()
