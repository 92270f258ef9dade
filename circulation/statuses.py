import logging

from .models import LoanStatus

logger = logging.getLogger(__name__)

CANONICAL_STATUSES = {
    LoanStatus.ACTIVE: {
        "description": "Active loan - the resource is out and within the allowed period",
        "color": "#007bff",
    },
    LoanStatus.RETURNED: {
        "description": "Returned loan - the resource was returned successfully",
        "color": "#28a745",
    },
    LoanStatus.OVERDUE: {
        "description": "Overdue loan - the loan is past its due date",
        "color": "#ffc107",
    },
    LoanStatus.LOST: {
        "description": "Lost resource - the resource was marked as lost",
        "color": "#dc3545",
    },
}


class LoanStatusRegistry:
    """Lookup of the fixed loan status vocabulary.

    The rows are seeded once after ``migrate`` (see ``CirculationConfig``);
    ``get`` still recreates a row that has gone missing so an incomplete
    database never blocks a loan operation.
    """

    def ensure_seeded(self):
        created_count = 0
        for name, defaults in CANONICAL_STATUSES.items():
            _, created = LoanStatus.objects.get_or_create(name=name, defaults=dict(defaults))
            if created:
                created_count += 1
                logger.info("Seeded loan status %s", name)
        return created_count

    def get(self, name):
        if name not in CANONICAL_STATUSES:
            raise ValueError(f"Unknown loan status: {name}")
        status = LoanStatus.objects.filter(name=name).first()
        if status is None:
            logger.warning("Loan status %s not found, creating it", name)
            status, _ = LoanStatus.objects.get_or_create(name=name, defaults=dict(CANONICAL_STATUSES[name]))
        return status

    def all(self):
        return [self.get(name) for name in CANONICAL_STATUSES]
