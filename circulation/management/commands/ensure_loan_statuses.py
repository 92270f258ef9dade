from django.core.management.base import BaseCommand

from circulation.statuses import LoanStatusRegistry


class Command(BaseCommand):
    help = "Create any missing loan status rows (active, returned, overdue, lost)."

    def handle(self, *args, **options):
        created = LoanStatusRegistry().ensure_seeded()
        self.stdout.write(self.style.SUCCESS(f"Loan statuses ready ({created} created)"))
