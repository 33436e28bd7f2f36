"""Notifications management CLI.

Database schema management plus the maintenance jobs that can also be
triggered over HTTP.

Usage:
    python src/manage.py setup-db                     # Create all tables
    python src/manage.py drop-db                      # Drop all tables
    python src/manage.py promote-scheduled            # Queue due deferred notifications
    python src/manage.py purge --older-than-days 180  # Delete old Sent/Failed records
"""

import argparse
import asyncio
import sys


def _domain():
    from notifications.domain import notifications

    print("Initializing notifications domain...")
    notifications.init()
    return notifications


def setup_database():
    from notifications.utils.db import setup_db

    domain = _domain()
    print("Creating notifications database schema...")
    setup_db(domain)
    print("Done.")


def drop_database():
    from notifications.utils.db import drop_db

    domain = _domain()
    print("Dropping notifications database schema...")
    drop_db(domain)
    print("Done.")


def promote_scheduled():
    from notifications.config import DeliverySettings
    from notifications.delivery.runtime import DeliveryRuntime
    from notifications.notification.scheduler import NotificationScheduler

    domain = _domain()
    settings = DeliverySettings.from_env()

    async def _promote():
        runtime = DeliveryRuntime.from_settings(domain, settings)
        scheduler = NotificationScheduler(runtime.publisher, batch_size=settings.scheduler_batch_size)
        try:
            with domain.domain_context():
                return await scheduler.promote_due()
        finally:
            await runtime.stop()

    promoted = asyncio.run(_promote())
    print(f"Promoted {len(promoted)} scheduled notification(s).")


def purge(older_than_days):
    from notifications.notification.retention import PurgeNotifications

    domain = _domain()
    with domain.domain_context():
        purged = domain.process(PurgeNotifications(older_than_days=older_than_days), asynchronous=False)
    print(f"Purged {purged} notification(s) older than {older_than_days} days.")


def main():
    parser = argparse.ArgumentParser(description="Notifications management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    subparsers.add_parser("promote-scheduled", help="Queue deferred notifications that are due")

    purge_parser = subparsers.add_parser("purge", help="Delete Sent/Failed notifications past retention")
    purge_parser.add_argument(
        "--older-than-days",
        type=int,
        default=180,
        help="Retention window in days (default: 180)",
    )

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "promote-scheduled":
        promote_scheduled()
    elif args.command == "purge":
        if args.older_than_days < 1:
            print("--older-than-days must be at least 1", file=sys.stderr)
            sys.exit(2)
        purge(args.older_than_days)


if __name__ == "__main__":
    main()
