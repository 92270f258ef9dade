from django.core.management.base import BaseCommand

from circulation.overdue import OverdueSweeper


class Command(BaseCommand):
    help = "Mark every past-due outstanding loan as overdue. Safe to run repeatedly."

    def handle(self, *args, **options):
        updated = OverdueSweeper().sweep()
        self.stdout.write(self.style.SUCCESS(f"Updated {updated} loans to overdue status"))
