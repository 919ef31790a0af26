"""
Admin monitor - watch the support queue from a terminal.

Signs in as an administrator, keeps an AdminPanel live and reprints the
statistics and ticket tables whenever something changes.

Run with: supportdesk-monitor --email admin@example.com --password ...
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime

from tabulate import tabulate

from supportdesk.config import SupportDeskSettings
from supportdesk.exceptions import AuthenticationError
from supportdesk.session import SupportSession
from supportdesk.utils.logging_config import setup_logging
from supportdesk.views.admin_panel import AdminPanel

logger = logging.getLogger(__name__)

TABLE_HEADERS = ["Created", "Category", "Priority", "Status", "Description"]


def ticket_rows(tickets):
    rows = []
    for ticket in tickets:
        description = ticket.description or ""
        if len(description) > 40:
            description = description[:37] + "..."
        created = ticket.created_at.strftime("%b %d, %Y") if ticket.created_at else "-"
        rows.append([created, ticket.category, ticket.priority or "-", ticket.status, description])
    return rows


def render_panel(panel: AdminPanel) -> str:
    lines = []
    metrics = panel.metrics.metrics
    if panel.metrics.loading or metrics is None:
        lines.append("Loading statistics...")
    else:
        lines.append(
            tabulate(
                [
                    ["Total Open Tickets", metrics.open_total],
                    ["Resolved Today", metrics.resolved_today],
                    ["Open by Category", metrics.category_summary()],
                ],
                tablefmt="simple",
            )
        )

    for title, tickets in (("Open Tickets", panel.open_tickets), ("Archive", panel.archived_tickets)):
        lines.append("")
        lines.append(f"{title} ({len(tickets)})")
        if panel.loading:
            lines.append("Loading...")
        elif not tickets:
            lines.append("No tickets.")
        else:
            lines.append(tabulate(ticket_rows(tickets), headers=TABLE_HEADERS, tablefmt="grid"))

    return "\n".join(lines)


async def run(args) -> int:
    settings = SupportDeskSettings.from_env(args.env_file)
    setup_logging(settings.log_level, settings.log_format)

    session = await SupportSession.connect(settings)
    try:
        await session.sign_in(args.email, args.password)
    except AuthenticationError as e:
        print(f"✗ {e}")
        return 1

    if not session.is_admin:
        print(f"✗ {args.email} is not an administrator")
        await session.sign_out()
        return 1

    panel = AdminPanel(session)
    panel.set_search(args.search)
    changed = asyncio.Event()
    panel.tickets.add_listener(lambda _: changed.set())
    panel.metrics.add_listener(lambda _: changed.set())

    try:
        await panel.activate()
        print(render_panel(panel))
        if args.once:
            return 0

        while True:
            try:
                await asyncio.wait_for(changed.wait(), timeout=args.interval)
            except asyncio.TimeoutError:
                continue
            changed.clear()
            print()
            print("=" * 80)
            print(f"Updated at {datetime.now().strftime('%I:%M:%S %p')}")
            print("=" * 80)
            print(render_panel(panel))
    finally:
        await session.sign_out()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Watch the support ticket queue")
    parser.add_argument("--email", required=True, help="Administrator email")
    parser.add_argument("--password", required=True, help="Administrator password")
    parser.add_argument("--search", default="", help="Only show tickets matching this text")
    parser.add_argument("--once", action="store_true", help="Print once and exit")
    parser.add_argument("--interval", type=float, default=30.0, help="Seconds between idle checks")
    parser.add_argument("--env-file", default=None, help="Path to a .env file")
    args = parser.parse_args(argv)

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\nStopped monitoring")
        return 0
    except ValueError as e:
        print(f"Configuration error: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
