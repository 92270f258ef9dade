import logging
from collections import Counter

from django.utils import timezone

from .conf import get_policy
from .exceptions import LoanValidationError
from .models import Loan, LoanStatus
from .statuses import LoanStatusRegistry

logger = logging.getLogger(__name__)

SEVERITY_LEVELS = ("low", "medium", "high", "critical")
RECENT_OVERDUE_LIMIT = 5


def severity_for(days_overdue):
    if days_overdue <= 7:
        return "low"
    if days_overdue <= 15:
        return "medium"
    if days_overdue <= 30:
        return "high"
    return "critical"


class OverdueSweeper:
    """Promotes past-due loans to ``overdue`` and reports on them."""

    def __init__(self, policy=None, clock=timezone.now, statuses=None):
        self.policy = policy or get_policy()
        self.clock = clock
        self.statuses = statuses or LoanStatusRegistry()

    def sweep(self):
        overdue = self.statuses.get(LoanStatus.OVERDUE)
        now = self.clock()
        updated = (
            Loan.objects.overdue(now)
            .exclude(status=overdue)
            .update(status=overdue, updated_at=now)
        )
        logger.info("Updated %s loans to overdue status", updated)
        return updated

    def overdue_loans(self):
        return Loan.objects.overdue(self.clock()).with_related().order_by("due_date")

    def describe(self, loan, now=None):
        now = now or self.clock()
        days = loan.days_overdue_at(now)
        return {
            "id": loan.pk,
            "person_id": loan.person_id,
            "resource_id": loan.resource_id,
            "due_date": loan.due_date,
            "days_overdue": days,
            "status": loan.status.name,
            "severity": severity_for(days),
        }

    def statistics(self):
        now = self.clock()
        loans = list(Loan.objects.overdue(now).with_related())

        by_severity = dict.fromkeys(SEVERITY_LEVELS, 0)
        by_person_type = Counter()
        by_grade = Counter()
        total_days = 0
        oldest, oldest_days = None, 0

        for loan in loans:
            days = loan.days_overdue_at(now)
            total_days += days
            by_severity[severity_for(days)] += 1
            if oldest is None or days > oldest_days:
                oldest, oldest_days = loan, days

            person = loan.person
            if person.person_type is not None:
                by_person_type[person.person_type.name] += 1
            if person.grade:
                by_grade[person.grade] += 1

        recent = sorted(loans, key=lambda loan: loan.due_date, reverse=True)[:RECENT_OVERDUE_LIMIT]
        return {
            "total_overdue": len(loans),
            "by_severity": by_severity,
            "by_person_type": dict(by_person_type),
            "by_grade": [{"grade": grade, "count": count} for grade, count in sorted(by_grade.items())],
            "average_days_overdue": round(total_days / len(loans), 2) if loans else 0,
            "oldest_overdue": (
                {"days_overdue": oldest_days, "loan": self.describe(oldest, now)} if oldest else None
            ),
            "recent_overdue": [self.describe(loan, now) for loan in recent],
        }

    def find_near_due(self, days_threshold=None):
        if days_threshold is None:
            days_threshold = self.policy.near_due_days
        if isinstance(days_threshold, bool) or not isinstance(days_threshold, int) or days_threshold < 1:
            raise LoanValidationError("The days threshold must be a positive integer", code="invalid_threshold")
        return Loan.objects.near_due(self.clock(), days_threshold).with_related().order_by("due_date")
