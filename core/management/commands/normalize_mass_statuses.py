from collections import Counter

from django.core.management.base import BaseCommand
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from core.models import Mass
from core.services.statuses import MASS_STATUSES, fold_status


class Command(BaseCommand):
    help = "Regrava status legados das missas (ex.: 'Agendada', 'cancelled') no valor canonico."

    def add_arguments(self, parser):
        parser.add_argument("--dry-run", action="store_true", help="Only report what would change.")

    def handle(self, *args, **options):
        dry_run = options["dry_run"]
        changes = Counter()
        unknown = Counter()
        legacy = Mass.objects.exclude(status__in=MASS_STATUSES).values_list("status", flat=True).distinct()
        for stored in list(legacy):
            canonical = fold_status(stored)
            if canonical is None:
                unknown[stored] = Mass.objects.filter(status=stored).count()
                continue
            if dry_run:
                changes[(stored, canonical)] = Mass.objects.filter(status=stored).count()
                continue
            with transaction.atomic():
                changes[(stored, canonical)] = Mass.objects.filter(status=stored).update(
                    status=canonical, version=F("version") + 1, updated_at=timezone.now()
                )

        for (stored, canonical), count in sorted(changes.items()):
            self.stdout.write(f"{stored!r} -> {canonical}: {count}")
        for stored, count in sorted(unknown.items()):
            self.stderr.write(self.style.WARNING(f"Unknown status {stored!r}: {count} masses left unchanged"))
        total = sum(changes.values())
        prefix = "Would normalize" if dry_run else "Normalized"
        self.stdout.write(self.style.SUCCESS(f"{prefix} {total} masses."))
