import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from .conf import get_policy
from .eligibility import EligibilityEngine
from .exceptions import (
    LoanNotFoundError,
    LoanStateConflictError,
    LoanValidationError,
    error_message,
)
from .inventory import InventoryStore
from .models import Loan, LoanStatus, Resource
from .statuses import LoanStatusRegistry
from .validators import clean_observations, parse_id, validate_renewal_days

logger = logging.getLogger(__name__)

RETURN_TAG = "DEVOLUCIÓN"
LOST_TAG = "PÉRDIDA"
RENEWAL_TAG = "RENOVACIÓN"

SUGGESTED_ACTIONS = {
    Resource.Condition.DAMAGED: "Inspect the resource to decide whether it can still be loaned",
    Resource.Condition.LOST: "Mark the resource as lost in the inventory",
}


@dataclass
class ReturnSummary:
    loan: Loan
    days_overdue: int
    was_overdue: bool
    resource_condition_changed: bool
    message: str
    penalty: Optional[dict] = None
    resource_condition: Optional[dict] = None


def _actor_id(actor):
    actor_id = getattr(actor, "pk", actor)
    if actor_id is None:
        raise LoanValidationError("An acting user is required", code="actor_required")
    return actor_id


def _coerce_return_date(value):
    if value in (None, ""):
        return None
    when = value if isinstance(value, datetime) else None
    if isinstance(value, str):
        try:
            when = parse_datetime(value)
        except ValueError:
            when = None
    if when is None:
        raise LoanValidationError(
            "The return date must be an ISO 8601 datetime", code="invalid_return_date"
        )
    if timezone.is_naive(when):
        when = timezone.make_aware(when)
    return when


def _plural_days(days):
    return f"{days} day{'s' if days != 1 else ''}"


class LoanLifecycleService:
    """Creates, renews and closes loans, keeping resource stock in step."""

    def __init__(self, policy=None, clock=timezone.now, eligibility=None, inventory=None, statuses=None):
        self.policy = policy or get_policy()
        self.clock = clock
        self.eligibility = eligibility or EligibilityEngine(policy=self.policy, clock=clock)
        self.inventory = inventory or InventoryStore(clock=clock)
        self.statuses = statuses or LoanStatusRegistry()

    def calculate_due_date(self, loan_date):
        return loan_date + timedelta(days=self.policy.loan_days)

    def create(self, person_id, resource_id, quantity=1, observations="", actor=None):
        actor_id = _actor_id(actor)
        observations = clean_observations(observations, self.policy)

        with transaction.atomic():
            person, resource = self.eligibility.validate(person_id, resource_id, quantity)
            loan_date = self.clock()
            loan = Loan.objects.create(
                person=person,
                resource=resource,
                quantity=quantity,
                loan_date=loan_date,
                due_date=self.calculate_due_date(loan_date),
                status=self.statuses.get(LoanStatus.ACTIVE),
                observations=observations,
                loaned_by_id=actor_id,
            )
            # Guarded increment; a refusal rolls the loan back.
            if not self.inventory.increment_loaned(resource.pk, quantity):
                raise LoanValidationError(
                    f"Not enough units available for resource {resource.pk}. Requested: {quantity}",
                    code="insufficient_stock",
                )

        logger.info(
            "Loan %s created: person %s, resource %s, quantity %s, due %s",
            loan.pk,
            person.pk,
            resource.pk,
            quantity,
            loan.due_date.isoformat(),
        )
        return loan

    def get_loan(self, loan_id):
        loan_pk = parse_id(loan_id, "loan")
        loan = Loan.objects.with_related().filter(pk=loan_pk).first()
        if loan is None:
            raise LoanNotFoundError("Loan not found")
        return loan

    def _lock_loan(self, loan_id):
        loan_pk = parse_id(loan_id, "loan")
        loan = (
            Loan.objects.select_for_update(of=("self",))
            .select_related("status", "resource", "person")
            .filter(pk=loan_pk)
            .first()
        )
        if loan is None:
            raise LoanNotFoundError("Loan not found")
        return loan

    def renew(self, loan_id, additional_days, actor=None):
        actor_id = _actor_id(actor)
        validate_renewal_days(additional_days, self.policy)

        with transaction.atomic():
            loan = self._lock_loan(loan_id)
            if loan.is_closed:
                raise LoanStateConflictError("Cannot renew a loan that was already returned")
            if loan.status.name != LoanStatus.ACTIVE:
                raise LoanStateConflictError(
                    f"Only active loans can be renewed (current status: {loan.status.name})"
                )
            if self.eligibility.has_other_overdue_loans(loan.person_id, loan.pk):
                raise LoanValidationError(
                    "The person has other overdue loans and cannot renew", code="overdue_loans"
                )

            now = self.clock()
            previous_due = loan.due_date
            loan.due_date = previous_due + timedelta(days=additional_days)
            loan.renewed_by_id = actor_id
            loan.renewed_at = now
            loan.append_observation(
                RENEWAL_TAG,
                f"+{_plural_days(additional_days)}, due {previous_due:%Y-%m-%d} -> {loan.due_date:%Y-%m-%d}",
            )
            loan.save(update_fields=["due_date", "renewed_by", "renewed_at", "observations", "updated_at"])

        logger.info("Loan %s renewed for %s days by user %s", loan.pk, additional_days, actor_id)
        return loan

    def process_return(
        self,
        loan_id,
        actor=None,
        return_date=None,
        resource_condition=None,
        return_observations=None,
    ):
        actor_id = _actor_id(actor)
        if resource_condition is not None and resource_condition not in Resource.Condition.values:
            raise LoanValidationError(
                f"Unknown resource condition: {resource_condition}", code="invalid_condition"
            )
        return_date = _coerce_return_date(return_date)
        return_observations = clean_observations(return_observations, self.policy)

        with transaction.atomic():
            loan = self._lock_loan(loan_id)
            if loan.is_closed:
                raise LoanStateConflictError(
                    f"The loan was already closed (status: {loan.status.name})"
                )

            returned_at = return_date or self.clock()
            if returned_at < loan.loan_date:
                raise LoanValidationError(
                    "The return date cannot be earlier than the loan date", code="invalid_return_date"
                )
            days_overdue = loan.days_overdue_at(returned_at)
            was_overdue = days_overdue > 0
            previous_condition = loan.resource.condition

            loan.returned_date = returned_at
            loan.status = self.statuses.get(LoanStatus.RETURNED)
            loan.returned_by_id = actor_id
            if return_observations:
                loan.append_observation(RETURN_TAG, return_observations)
            loan.save(update_fields=["returned_date", "status", "returned_by", "observations", "updated_at"])

            resource_id = loan.resource_id
            if resource_condition != Resource.Condition.LOST:
                if not self.inventory.decrement_loaned(resource_id, loan.quantity):
                    logger.warning("Failed to update stock for resource %s after return", resource_id)
            else:
                logger.debug("Resource %s returned as lost, stock not updated", resource_id)

            condition_changed = False
            if resource_condition:
                condition_changed = self.inventory.set_condition(resource_id, resource_condition)
            self.inventory.set_availability(
                resource_id, resource_condition not in Resource.UNLOANABLE_CONDITIONS
            )

        message = "Return registered successfully"
        if was_overdue:
            message += f" ({_plural_days(days_overdue)} late)"
        if condition_changed:
            message += f". Resource condition updated to: {Resource.Condition(resource_condition).label}"

        logger.info(
            "Return processed for loan %s: was_overdue=%s, days_overdue=%s, condition=%s",
            loan.pk,
            was_overdue,
            days_overdue,
            resource_condition,
        )

        summary = ReturnSummary(
            loan=loan,
            days_overdue=days_overdue,
            was_overdue=was_overdue,
            resource_condition_changed=condition_changed,
            message=message,
        )
        if was_overdue:
            summary.penalty = {
                "has_late_return_penalty": True,
                "penalty_days": days_overdue,
                "description": f"Late return of {_plural_days(days_overdue)}",
            }
        if resource_condition:
            summary.resource_condition = {
                "previous_condition": previous_condition,
                "new_condition": resource_condition,
                "requires_action": resource_condition in Resource.UNLOANABLE_CONDITIONS,
                "suggested_action": SUGGESTED_ACTIONS.get(resource_condition),
            }
        return summary

    def mark_as_lost(self, loan_id, observations, actor=None):
        actor_id = _actor_id(actor)
        observations = clean_observations(observations, self.policy, required=True)

        with transaction.atomic():
            loan = self._lock_loan(loan_id)
            if loan.is_closed:
                raise LoanStateConflictError(
                    f"The loan was already closed (status: {loan.status.name})"
                )

            loan.returned_date = self.clock()
            loan.status = self.statuses.get(LoanStatus.LOST)
            loan.returned_by_id = actor_id
            loan.append_observation(LOST_TAG, observations)
            loan.save(update_fields=["returned_date", "status", "returned_by", "observations", "updated_at"])

            # The unit leaves circulation: it is no longer out on loan, and the
            # resource stays unavailable until someone audits it.
            if not self.inventory.decrement_loaned(loan.resource_id, loan.quantity):
                logger.warning("Failed to update stock for lost resource %s", loan.resource_id)
            self.inventory.set_condition(loan.resource_id, Resource.Condition.LOST, available=False)

        logger.info("Loan %s marked as lost by user %s", loan.pk, actor_id)
        return loan

    def process_batch_returns(self, items, actor=None):
        results = []
        for item in items:
            loan_id = item.get("loan_id")
            try:
                summary = self.process_return(
                    loan_id,
                    actor=actor,
                    return_date=item.get("return_date"),
                    resource_condition=item.get("resource_condition"),
                    return_observations=item.get("return_observations"),
                )
            except (LoanValidationError, LoanNotFoundError, LoanStateConflictError) as exc:
                logger.warning("Return for loan %s rejected in batch: %s", loan_id, error_message(exc))
                results.append({"loan_id": loan_id, "success": False, "error": error_message(exc)})
            except Exception as exc:
                logger.exception("Error processing return for loan %s in batch", loan_id)
                results.append({"loan_id": loan_id, "success": False, "error": error_message(exc)})
            else:
                results.append({"loan_id": loan_id, "success": True, "message": summary.message})

        succeeded = sum(1 for result in results if result["success"])
        logger.info("Batch returns processed: %s successful, %s failed", succeeded, len(results) - succeeded)
        return results

    def find_active_by_person(self, person_id):
        return Loan.objects.for_person(parse_id(person_id, "person")).outstanding().with_related()

    def history_by_person(self, person_id, limit=50):
        return Loan.objects.for_person(parse_id(person_id, "person")).with_related()[:limit]

    def history_by_resource(self, resource_id, limit=50):
        return Loan.objects.for_resource(parse_id(resource_id, "resource")).with_related()[:limit]

    def search(self, limit=None, **filters):
        loans = Loan.objects.with_related().search(now=self.clock(), **filters)
        return loans[:limit] if limit else loans

    def pending_returns(self, limit=50):
        return Loan.objects.overdue(self.clock()).with_related().order_by("due_date")[:limit]

    def return_history(self, start_date=None, end_date=None, limit=100):
        loans = Loan.objects.closed().with_related()
        if start_date:
            loans = loans.filter(returned_date__gte=start_date)
        if end_date:
            loans = loans.filter(returned_date__lte=end_date)
        return loans.order_by("-returned_date")[:limit]

    def statistics(self):
        return Loan.objects.summary(self.clock())
