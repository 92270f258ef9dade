from dataclasses import asdict, dataclass

from django.conf import settings


@dataclass(frozen=True)
class LoanPolicy:
    max_loans_per_person: int = 3
    loan_days: int = 15
    min_quantity: int = 1
    max_quantity: int = 5
    request_quantity_ceiling: int = 50
    student_max_quantity: int = 1
    min_renewal_days: int = 1
    max_renewal_days: int = 30
    near_due_days: int = 3
    max_observation_length: int = 500

    def as_dict(self):
        return asdict(self)


def get_policy(**overrides):
    """Build the loan policy from ``settings.LIBRARY_LOANS`` plus keyword overrides."""
    values = {key.lower(): value for key, value in getattr(settings, "LIBRARY_LOANS", {}).items()}
    values.update(overrides)
    return LoanPolicy(**values)
