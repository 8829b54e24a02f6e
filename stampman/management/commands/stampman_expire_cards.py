from django.core.management.base import BaseCommand
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from stampman.service import LedgerService


class Command(BaseCommand):
    help = "Expire loyalty cards whose expires_at has passed"

    def add_arguments(self, parser):
        parser.add_argument(
            "--now",
            default=None,
            help="Reference instant (ISO 8601) instead of the current time. "
            "Values without an offset are read in the current time zone.",
        )

    def handle(self, *args, **options):
        now = None
        if options["now"]:
            now = parse_datetime(options["now"])
            if now is None:
                self.stderr.write(self.style.ERROR(f"Invalid --now value: {options['now']}"))
                return
            if timezone.is_naive(now):
                now = timezone.make_aware(now)

        expired = LedgerService().expire_due_cards(now=now)
        self.stdout.write(self.style.SUCCESS(f"Expired {len(expired)} loyalty cards."))
