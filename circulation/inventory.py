import logging
from dataclasses import asdict, dataclass

from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from .exceptions import LoanValidationError
from .models import Loan, Resource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockInfo:
    total_quantity: int
    current_loans_count: int
    available_quantity: int
    has_stock: bool

    @classmethod
    def from_resource(cls, resource):
        return cls(
            total_quantity=resource.total_quantity,
            current_loans_count=resource.current_loans_count,
            available_quantity=resource.available_quantity,
            has_stock=resource.has_stock,
        )

    def as_dict(self):
        return asdict(self)


class InventoryStore:
    """Stock counters of resources.

    Counter mutations are single UPDATE statements so concurrent requests
    never read-modify-write the same row. They report failure through their
    return value and the log instead of raising; callers decide whether a
    failed mutation is fatal.
    """

    def __init__(self, clock=timezone.now):
        self.clock = clock

    def find_by_id(self, resource_id):
        return Resource.objects.filter(pk=resource_id).first()

    def find_by_isbn(self, isbn):
        isbn = (isbn or "").strip()
        if not isbn:
            return None
        return Resource.objects.filter(isbn=isbn).first()

    def increment_loaned(self, resource_id, quantity):
        now = self.clock()
        try:
            with transaction.atomic():
                updated = Resource.objects.filter(
                    pk=resource_id,
                    current_loans_count__lte=F("total_quantity") - quantity,
                ).update(
                    current_loans_count=F("current_loans_count") + quantity,
                    total_loans=F("total_loans") + quantity,
                    last_loan_date=now,
                    updated_at=now,
                )
        except DatabaseError:
            logger.exception("Error incrementing current loans for resource %s (+%s)", resource_id, quantity)
            return False

        if not updated:
            logger.warning(
                "Could not increment current loans for resource %s by %s: not enough stock or missing resource",
                resource_id,
                quantity,
            )
            return False
        logger.debug("Incremented loans for resource %s: +%s", resource_id, quantity)
        return True

    def decrement_loaned(self, resource_id, quantity):
        now = self.clock()
        try:
            with transaction.atomic():
                updated = Resource.objects.filter(
                    pk=resource_id, current_loans_count__gte=quantity
                ).update(
                    current_loans_count=F("current_loans_count") - quantity,
                    updated_at=now,
                )
                if updated:
                    logger.debug("Decremented loans for resource %s: -%s", resource_id, quantity)
                    return True
                reset = Resource.objects.filter(pk=resource_id).update(current_loans_count=0, updated_at=now)
        except DatabaseError:
            logger.exception("Error decrementing current loans for resource %s (-%s)", resource_id, quantity)
            return False

        if not reset:
            logger.warning("Resource %s not found while decrementing current loans", resource_id)
            return False
        logger.warning(
            "Decrement of %s would leave a negative loan count for resource %s; reset to 0",
            quantity,
            resource_id,
        )
        return True

    def get_stock_info(self, resource_id):
        resource = Resource.objects.filter(pk=resource_id).only(
            "total_quantity", "current_loans_count", "available"
        ).first()
        if resource is None:
            return None
        return StockInfo.from_resource(resource)

    def set_availability(self, resource_id, available):
        updated = Resource.objects.filter(pk=resource_id).update(available=available, updated_at=self.clock())
        logger.debug("Resource %s availability set to %s", resource_id, available)
        return bool(updated)

    def set_condition(self, resource_id, condition, available=None):
        if condition not in Resource.Condition.values:
            raise LoanValidationError(f"Unknown resource condition: {condition}", code="invalid_condition")
        changes = {"condition": condition, "updated_at": self.clock()}
        if available is not None:
            changes["available"] = available
        updated = Resource.objects.filter(pk=resource_id).update(**changes)
        logger.debug("Resource %s condition set to %s", resource_id, condition)
        return bool(updated)

    def update_total_quantity(self, resource_id, new_total):
        if isinstance(new_total, bool) or not isinstance(new_total, int) or new_total < 1:
            raise LoanValidationError("Total quantity must be greater than 0", code="invalid_total_quantity")

        updated = Resource.objects.filter(pk=resource_id, current_loans_count__lte=new_total).update(
            total_quantity=new_total, updated_at=self.clock()
        )
        resource = self.find_by_id(resource_id)
        if resource is None:
            raise LoanValidationError("Resource not found", code="resource_not_found")
        if not updated:
            raise LoanValidationError(
                f"The new quantity ({new_total}) cannot be lower than the current loans "
                f"({resource.current_loans_count})",
                code="total_below_loans",
            )
        logger.info("Updated total quantity for resource %s: %s", resource_id, new_total)
        return resource

    def sync_current_loans_count(self, resource_id):
        """Recompute the loan counter of one resource from its outstanding loans."""
        resource = self.find_by_id(resource_id)
        if resource is None:
            return False
        real = Loan.objects.for_resource(resource_id).outstanding_units()
        return self._apply_count(resource, real)

    def reconcile_all(self):
        corrected = 0
        for resource in Resource.objects.with_outstanding_units():
            if resource.current_loans_count != resource.outstanding_units:
                if self._apply_count(resource, resource.outstanding_units):
                    corrected += 1
        logger.info("Reconciled loan counters: %s resources corrected", corrected)
        return corrected

    def _apply_count(self, resource, real):
        count = max(0, real)
        if count > resource.total_quantity:
            logger.warning(
                "Resource %s has %s units out but only %s in total; clamping counter",
                resource.pk,
                count,
                resource.total_quantity,
            )
            count = resource.total_quantity
        updated = Resource.objects.filter(pk=resource.pk).update(
            current_loans_count=count, updated_at=self.clock()
        )
        if updated:
            logger.debug(
                "Synced current loans for resource %s: %s -> %s", resource.pk, resource.current_loans_count, count
            )
        return bool(updated)

    def resources_with_stock(self, limit=None):
        resources = Resource.objects.with_stock()
        return resources[:limit] if limit else resources

    def resources_without_stock(self):
        return Resource.objects.without_stock()

    def stock_statistics(self):
        return Resource.objects.stock_statistics()
