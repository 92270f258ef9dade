from .exceptions import LoanValidationError


def parse_id(value, label):
    """Return ``value`` as a positive integer primary key or raise."""
    if isinstance(value, bool):
        raise LoanValidationError(f"Invalid {label} id", code="invalid_id")
    try:
        pk = int(value)
    except (TypeError, ValueError):
        raise LoanValidationError(f"Invalid {label} id", code="invalid_id")
    if pk < 1:
        raise LoanValidationError(f"Invalid {label} id", code="invalid_id")
    return pk


def validate_quantity(quantity, policy):
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < policy.min_quantity:
        raise LoanValidationError(
            f"Quantity must be an integer greater than {policy.min_quantity - 1}",
            code="invalid_quantity",
        )
    if quantity > policy.request_quantity_ceiling:
        raise LoanValidationError(
            f"Quantity cannot exceed {policy.request_quantity_ceiling} units",
            code="quantity_ceiling",
        )
    return quantity


def validate_renewal_days(days, policy):
    if (
        isinstance(days, bool)
        or not isinstance(days, int)
        or not policy.min_renewal_days <= days <= policy.max_renewal_days
    ):
        raise LoanValidationError(
            f"Additional days must be between {policy.min_renewal_days} and {policy.max_renewal_days}",
            code="invalid_renewal_days",
        )
    return days


def clean_observations(text, policy, required=False):
    if text is not None and not isinstance(text, str):
        raise LoanValidationError("Observations must be text", code="invalid_observations")
    text = (text or "").strip()
    if required and not text:
        raise LoanValidationError("Observations are required", code="observations_required")
    if len(text) > policy.max_observation_length:
        raise LoanValidationError(
            f"Observations cannot exceed {policy.max_observation_length} characters",
            code="observations_too_long",
        )
    return text
