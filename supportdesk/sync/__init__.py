"""
Realtime read-models kept in sync with the Supabase tables.
"""

from supportdesk.sync.archive import ArchivePartition, matches_search, partition_tickets, sort_tickets
from supportdesk.sync.audit_trail import AuditTrailReadModel
from supportdesk.sync.base import ReadModel
from supportdesk.sync.messages import MessageThreadReadModel
from supportdesk.sync.metrics import (
    NO_OPEN_TICKETS,
    ClientMetricsView,
    ServerMetricsView,
    TicketMetrics,
    start_of_today,
)
from supportdesk.sync.tickets import Audience, TicketReadModel

__all__ = [
    'ArchivePartition',
    'Audience',
    'AuditTrailReadModel',
    'ClientMetricsView',
    'MessageThreadReadModel',
    'NO_OPEN_TICKETS',
    'ReadModel',
    'ServerMetricsView',
    'TicketMetrics',
    'TicketReadModel',
    'matches_search',
    'partition_tickets',
    'sort_tickets',
    'start_of_today',
]
