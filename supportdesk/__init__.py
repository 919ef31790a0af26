"""
Support Desk realtime synchronization.

Keeps the customer dashboard, the admin panel and the ticket detail view
consistent with the Supabase tables they display:
- tickets (one customer's, or all of them for administrators)
- ticket_messages (per-ticket conversation thread)
- audit_logs (per-ticket status history)
"""

__version__ = "0.1.0"
