"""
Management command: ``python manage.py purge_notifications``

Deletes inbox notifications older than the retention window
(``REPORT_WORKFLOW["NOTIFICATION_RETENTION_DAYS"]``, 30 days by default).
Meant to be scheduled (cron / systemd timer); safe to run repeatedly.
"""

from django.core.management.base import BaseCommand, CommandError

from core.domain.notifications import NotificationDispatcher


class Command(BaseCommand):
    help = "Deletes inbox notifications older than the retention window."

    def add_arguments(self, parser):
        parser.add_argument(
            "--days",
            type=int,
            default=None,
            help="Override the retention window in days.",
        )

    def handle(self, *args, **options):
        days = options["days"]
        if days is not None and days < 0:
            raise CommandError("--days must be zero or positive.")

        deleted = NotificationDispatcher.purge_expired(days)
        self.stdout.write(self.style.SUCCESS(f"Purged {deleted} notification(s)."))
