from django.core.exceptions import ObjectDoesNotExist, ValidationError


class LoanValidationError(ValidationError):
    """A loan operation was rejected for a reason the caller can correct."""


class LoanNotFoundError(ObjectDoesNotExist):
    pass


class LoanStateConflictError(Exception):
    """The loan is in a state that does not allow the requested operation."""


def error_message(exc):
    if isinstance(exc, ValidationError):
        return exc.messages[0] if exc.messages else str(exc)
    return str(exc)
