import logging

from django.utils import timezone

from .conf import get_policy
from .exceptions import LoanValidationError, error_message
from .models import Loan, Person, PersonType, Resource
from .validators import parse_id, validate_quantity

logger = logging.getLogger(__name__)


class EligibilityEngine:
    """Decides whether a person may take a new loan of a resource.

    ``validate`` runs the checks in a fixed order and stops at the first
    failure. Stock is measured against the outstanding loans at the time of
    the call; the lifecycle service guards the counter update itself.
    """

    def __init__(self, policy=None, clock=timezone.now):
        self.policy = policy or get_policy()
        self.clock = clock

    def validate(self, person_id, resource_id, quantity=1):
        logger.debug(
            "Validating loan for person %s, resource %s, quantity %s", person_id, resource_id, quantity
        )
        try:
            person_pk = parse_id(person_id, "person")
            resource_pk = parse_id(resource_id, "resource")
            validate_quantity(quantity, self.policy)

            person = self._check_person(person_pk)
            resource = self._check_resource(resource_pk)
            available = self._check_stock(resource, quantity)
            self._check_quantity_for_type(person, quantity, available)
            self._check_loan_limit(person)
            self._check_overdue(person)
        except LoanValidationError as exc:
            logger.warning(
                "Loan validation failed for person %s and resource %s: %s",
                person_id,
                resource_id,
                error_message(exc),
            )
            raise

        logger.debug("All loan validations passed for person %s and resource %s", person_id, resource_id)
        return person, resource

    def _check_person(self, person_pk):
        person = Person.objects.select_related("person_type").filter(pk=person_pk).first()
        if person is None:
            raise LoanValidationError("The person does not exist", code="person_not_found")
        if not person.active:
            raise LoanValidationError("The person is not active", code="person_inactive")
        if person.person_type is not None and not person.person_type.active:
            raise LoanValidationError("The person type is not active", code="person_type_inactive")
        return person

    def _check_resource(self, resource_pk):
        resource = Resource.objects.filter(pk=resource_pk).first()
        if resource is None:
            raise LoanValidationError("The resource does not exist", code="resource_not_found")
        if not resource.available:
            raise LoanValidationError("The resource is not available for loan", code="resource_unavailable")
        if resource.condition in Resource.UNLOANABLE_CONDITIONS:
            raise LoanValidationError(
                f"The resource cannot be loaned because it is {resource.get_condition_display().lower()}",
                code="resource_condition",
            )
        return resource

    def _available_units(self, resource):
        return resource.total_quantity - Loan.objects.for_resource(resource.pk).outstanding_units()

    def _check_stock(self, resource, quantity):
        available = self._available_units(resource)
        if available < quantity:
            raise LoanValidationError(
                f"Not enough units available. Requested: {quantity}, "
                f"available: {max(0, available)}, total: {resource.total_quantity}",
                code="insufficient_stock",
            )
        logger.debug("Stock check passed: %s/%s available", available, resource.total_quantity)
        return available

    def _check_quantity_for_type(self, person, quantity, available):
        person_type = person.person_type
        if person_type is None:
            raise LoanValidationError("Could not determine the person type", code="person_type_unknown")

        if person_type.name == PersonType.STUDENT:
            if quantity > self.policy.student_max_quantity:
                raise LoanValidationError(
                    f"Students can only borrow {self.policy.student_max_quantity} unit at a time. "
                    f"Requested: {quantity}",
                    code="student_quantity_limit",
                )
        elif person_type.name == PersonType.TEACHER:
            if quantity > available:
                raise LoanValidationError(
                    f"Teachers can borrow up to {max(0, available)} available units. Requested: {quantity}",
                    code="teacher_quantity_limit",
                )
        elif quantity > self.policy.max_quantity:
            raise LoanValidationError(
                f"Maximum quantity allowed: {self.policy.max_quantity}. Requested: {quantity}",
                code="quantity_limit",
            )

    def _active_loan_count(self, person_pk):
        return Loan.objects.for_person(person_pk).outstanding().count()

    def _overdue_loan_count(self, person_pk, exclude_loan=None):
        loans = Loan.objects.for_person(person_pk).overdue(self.clock())
        if exclude_loan is not None:
            loans = loans.exclude(pk=exclude_loan)
        return loans.count()

    def _check_loan_limit(self, person):
        active = self._active_loan_count(person.pk)
        if active >= self.policy.max_loans_per_person:
            raise LoanValidationError(
                f"The person already has {active} active loans. "
                f"Maximum allowed: {self.policy.max_loans_per_person}",
                code="loan_limit",
            )

    def _check_overdue(self, person):
        overdue = self._overdue_loan_count(person.pk)
        if overdue:
            plural = "s" if overdue > 1 else ""
            raise LoanValidationError(
                f"The person has {overdue} overdue loan{plural} and must return "
                f"{'them' if overdue > 1 else 'it'} before borrowing again",
                code="overdue_loans",
            )

    def has_other_overdue_loans(self, person_pk, loan_pk):
        return self._overdue_loan_count(person_pk, exclude_loan=loan_pk) > 0

    def can_person_borrow(self, person_id):
        """Advisory check for UI gating. Never raises; errors answer ``False``."""
        try:
            person_pk = parse_id(person_id, "person")
        except LoanValidationError:
            return {"can_borrow": False, "reason": "Invalid person id"}

        try:
            person = Person.objects.filter(pk=person_pk).first()
            if person is None:
                return {"can_borrow": False, "reason": "The person does not exist"}
            if not person.active:
                return {"can_borrow": False, "reason": "The person is not active"}

            active = self._active_loan_count(person_pk)
            has_overdue = self._overdue_loan_count(person_pk) > 0
        except Exception:
            logger.exception("Error checking whether person %s can borrow", person_id)
            return {"can_borrow": False, "reason": "Internal validation error"}

        result = {
            "can_borrow": True,
            "active_loans_count": active,
            "has_overdue_loans": has_overdue,
            "max_loans_allowed": self.policy.max_loans_per_person,
        }
        if has_overdue:
            result.update(can_borrow=False, reason="The person has overdue loans")
        elif active >= self.policy.max_loans_per_person:
            result.update(
                can_borrow=False,
                reason=f"The maximum of {self.policy.max_loans_per_person} loans has been reached",
            )
        return result

    def get_resource_availability_info(self, resource_id):
        resource_pk = parse_id(resource_id, "resource")
        resource = Resource.objects.filter(pk=resource_pk).first()
        if resource is None:
            raise LoanValidationError("Resource not found", code="resource_not_found")

        current = Loan.objects.for_resource(resource_pk).outstanding_units()
        available = resource.total_quantity - current
        return {
            "total_quantity": resource.total_quantity,
            "current_loans": current,
            "available_quantity": max(0, available),
            "can_loan": resource.available and available > 0,
            "resource": {"id": resource.pk, "title": resource.title, "available": resource.available},
        }

    def get_max_quantity_for_person(self, person_id, resource_id):
        person_pk = parse_id(person_id, "person")
        resource_pk = parse_id(resource_id, "resource")
        person = Person.objects.select_related("person_type").filter(pk=person_pk).first()
        if person is None:
            raise LoanValidationError("Person not found", code="person_not_found")
        resource = Resource.objects.filter(pk=resource_pk).first()
        if resource is None:
            raise LoanValidationError("Resource not found", code="resource_not_found")

        available = self._available_units(resource)
        person_type = person.person_type
        if person_type is None:
            return {
                "max_quantity": 0,
                "reason": "Could not determine the person type",
                "person_type": "unknown",
            }

        if person_type.name == PersonType.STUDENT:
            max_quantity = min(self.policy.student_max_quantity, available)
            reason = f"Students can borrow at most {self.policy.student_max_quantity} unit"
        elif person_type.name == PersonType.TEACHER:
            max_quantity = min(self.policy.request_quantity_ceiling, available)
            reason = "Teachers can borrow all the available quantity"
        else:
            max_quantity = min(self.policy.max_quantity, available)
            reason = f"General maximum: {self.policy.max_quantity} units"

        return {"max_quantity": max(0, max_quantity), "reason": reason, "person_type": person_type.name}

    def get_configuration_limits(self):
        return self.policy.as_dict()
