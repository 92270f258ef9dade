from django.apps import AppConfig
from django.db.models.signals import post_migrate


def seed_loan_statuses(sender, **kwargs):
    from .statuses import LoanStatusRegistry

    LoanStatusRegistry().ensure_seeded()


class CirculationConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "circulation"
    verbose_name = "Circulation"

    def ready(self):
        post_migrate.connect(seed_loan_statuses, sender=self)
