from django.core.management.base import BaseCommand, CommandError

from circulation.inventory import InventoryStore


class Command(BaseCommand):
    help = "Recompute resource loan counters from the outstanding loans."

    def add_arguments(self, parser):
        parser.add_argument("--resource", type=int, help="Only reconcile this resource id")

    def handle(self, *args, **options):
        inventory = InventoryStore()
        resource_id = options.get("resource")
        if resource_id is not None:
            if not inventory.sync_current_loans_count(resource_id):
                raise CommandError(f"Resource {resource_id} not found")
            self.stdout.write(self.style.SUCCESS(f"Resource {resource_id} synced"))
            return

        corrected = inventory.reconcile_all()
        self.stdout.write(self.style.SUCCESS(f"Reconciled loan counters: {corrected} resources corrected"))
