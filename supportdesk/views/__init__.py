"""
Views composing the read-models: customer dashboard, admin panel and
ticket detail.
"""

from supportdesk.views.admin_panel import AdminPanel
from supportdesk.views.customer_dashboard import CustomerDashboard, validate_ticket_form
from supportdesk.views.ticket_detail import TicketDetail

__all__ = [
    'AdminPanel',
    'CustomerDashboard',
    'TicketDetail',
    'validate_ticket_form',
]
