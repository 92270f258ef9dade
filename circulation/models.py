import math
from datetime import timedelta

from django.conf import settings
from django.core.validators import MinValueValidator, RegexValidator
from django.db import models
from django.db.models import Count, F, Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

SECONDS_PER_DAY = 24 * 60 * 60


def is_overdue_at(due_date, returned_date, now):
    return returned_date is None and now > due_date


def days_overdue_at(due_date, returned_date, now):
    """Whole days past ``due_date``, rounded up, measured at return time or ``now``."""
    reference = returned_date if returned_date is not None else now
    seconds = (reference - due_date).total_seconds()
    if seconds <= 0:
        return 0
    return math.ceil(seconds / SECONDS_PER_DAY)


class PersonType(models.Model):
    STUDENT = "student"
    TEACHER = "teacher"

    name = models.CharField(max_length=50, unique=True)
    description = models.CharField(max_length=200, blank=True)
    active = models.BooleanField(default=True)

    def __str__(self):
        return self.name


class Person(models.Model):
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    document_number = models.CharField(max_length=20, unique=True)
    grade = models.CharField(max_length=20, blank=True)
    person_type = models.ForeignKey(
        PersonType, on_delete=models.PROTECT, null=True, blank=True, related_name="persons"
    )
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["last_name", "first_name"]

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self):
        return self.full_name


class ResourceQuerySet(models.QuerySet):
    def with_stock(self):
        return self.filter(available=True, total_quantity__gt=F("current_loans_count"))

    def without_stock(self):
        return self.filter(Q(available=False) | Q(total_quantity__lte=F("current_loans_count")))

    def with_outstanding_units(self):
        return self.annotate(
            outstanding_units=Coalesce(
                Sum("loans__quantity", filter=Q(loans__returned_date__isnull=True)), 0
            )
        )

    def stock_statistics(self):
        totals = self.aggregate(
            total_resources=Count("id"),
            total_units=Coalesce(Sum("total_quantity"), 0),
            loaned_units=Coalesce(Sum("current_loans_count"), 0),
        )
        totals["resources_with_stock"] = self.with_stock().count()
        totals["resources_without_stock"] = self.without_stock().count()
        totals["available_units"] = totals["total_units"] - totals["loaned_units"]
        return totals


class Resource(models.Model):
    class Kind(models.TextChoices):
        BOOK = "book", "Book"
        GAME = "game", "Game"
        MAP = "map", "Map"
        OTHER = "other", "Other"

    class Condition(models.TextChoices):
        GOOD = "good", "Good"
        DETERIORATED = "deteriorated", "Deteriorated"
        DAMAGED = "damaged", "Damaged"
        LOST = "lost", "Lost"

    UNLOANABLE_CONDITIONS = (Condition.DAMAGED, Condition.LOST)

    title = models.CharField(max_length=300)
    kind = models.CharField(max_length=10, choices=Kind.choices, default=Kind.BOOK)
    isbn = models.CharField(max_length=17, blank=True, db_index=True)
    total_quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    current_loans_count = models.PositiveIntegerField(default=0)
    total_loans = models.PositiveIntegerField(default=0)
    last_loan_date = models.DateTimeField(null=True, blank=True)
    available = models.BooleanField(default=True)
    condition = models.CharField(max_length=20, choices=Condition.choices, default=Condition.GOOD)
    notes = models.TextField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ResourceQuerySet.as_manager()

    class Meta:
        ordering = ["title"]
        constraints = [
            models.CheckConstraint(
                condition=Q(total_quantity__gte=1),
                name="resource_total_quantity_positive",
            ),
            models.CheckConstraint(
                condition=Q(current_loans_count__lte=F("total_quantity")),
                name="resource_loans_within_total",
            ),
        ]

    @property
    def available_quantity(self):
        return max(0, self.total_quantity - self.current_loans_count)

    @property
    def has_stock(self):
        return self.available and self.available_quantity > 0

    def __str__(self):
        return self.title


class LoanStatus(models.Model):
    ACTIVE = "active"
    RETURNED = "returned"
    OVERDUE = "overdue"
    LOST = "lost"
    NAME_CHOICES = [
        (ACTIVE, "Active"),
        (RETURNED, "Returned"),
        (OVERDUE, "Overdue"),
        (LOST, "Lost"),
    ]
    TERMINAL = (RETURNED, LOST)

    name = models.CharField(max_length=20, unique=True, choices=NAME_CHOICES)
    description = models.CharField(max_length=200)
    color = models.CharField(
        max_length=7,
        default="#007bff",
        validators=[RegexValidator(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$", "Color must be a hex code")],
    )
    active = models.BooleanField(default=True)

    class Meta:
        verbose_name_plural = "loan statuses"

    def __str__(self):
        return self.name


class LoanQuerySet(models.QuerySet):
    def outstanding(self):
        return self.filter(returned_date__isnull=True)

    def closed(self):
        return self.filter(returned_date__isnull=False)

    def overdue(self, now=None):
        now = now or timezone.now()
        return self.outstanding().filter(due_date__lt=now)

    def near_due(self, now, days):
        return (
            self.outstanding()
            .exclude(status__name=LoanStatus.OVERDUE)
            .filter(due_date__gt=now, due_date__lte=now + timedelta(days=days))
        )

    def for_person(self, person_id):
        return self.filter(person_id=person_id)

    def for_resource(self, resource_id):
        return self.filter(resource_id=resource_id)

    def with_status(self, name):
        return self.filter(status__name=name)

    def with_related(self):
        return self.select_related("person__person_type", "resource", "status")

    def outstanding_units(self):
        return self.outstanding().aggregate(units=Coalesce(Sum("quantity"), 0))["units"]

    def search(
        self,
        person=None,
        resource=None,
        status=None,
        is_overdue=None,
        date_from=None,
        date_to=None,
        text=None,
        now=None,
    ):
        loans = self
        if person:
            loans = loans.filter(person_id=person)
        if resource:
            loans = loans.filter(resource_id=resource)
        if status:
            loans = loans.filter(status__name=status)
        if is_overdue is not None:
            overdue = Q(returned_date__isnull=True, due_date__lt=now or timezone.now())
            loans = loans.filter(overdue) if is_overdue else loans.exclude(overdue)
        if date_from:
            loans = loans.filter(loan_date__gte=date_from)
        if date_to:
            loans = loans.filter(loan_date__lte=date_to)
        if text:
            loans = loans.filter(
                Q(person__first_name__icontains=text)
                | Q(person__last_name__icontains=text)
                | Q(person__document_number__icontains=text)
                | Q(resource__title__icontains=text)
                | Q(resource__isbn__icontains=text)
                | Q(observations__icontains=text)
            ).distinct()
        return loans

    def summary(self, now=None):
        now = now or timezone.now()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        most_borrowed = (
            self.values("resource_id", "resource__title")
            .annotate(count=Count("id"))
            .order_by("-count", "resource__title")[:5]
        )
        return {
            "total_loans": self.count(),
            "active_loans": self.outstanding().count(),
            "overdue_loans": self.overdue(now).count(),
            "returned_this_month": self.with_status(LoanStatus.RETURNED)
            .filter(returned_date__gte=month_start)
            .count(),
            "most_borrowed_resources": [
                {"resource_id": row["resource_id"], "title": row["resource__title"], "count": row["count"]}
                for row in most_borrowed
            ],
        }


class Loan(models.Model):
    person = models.ForeignKey(Person, on_delete=models.PROTECT, related_name="loans")
    resource = models.ForeignKey(Resource, on_delete=models.PROTECT, related_name="loans")
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    loan_date = models.DateTimeField(default=timezone.now)
    due_date = models.DateTimeField()
    returned_date = models.DateTimeField(null=True, blank=True)
    status = models.ForeignKey(LoanStatus, on_delete=models.PROTECT, related_name="loans")
    observations = models.TextField(blank=True, default="")
    loaned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="loans_registered"
    )
    returned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="loans_received",
    )
    renewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="loans_renewed",
    )
    renewed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = LoanQuerySet.as_manager()

    class Meta:
        ordering = ["-loan_date"]
        indexes = [
            models.Index(fields=["person", "returned_date"], name="loan_person_outstanding_idx"),
            models.Index(fields=["resource", "returned_date"], name="loan_resource_outstanding_idx"),
            models.Index(fields=["status", "due_date"], name="loan_status_due_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(quantity__gte=1), name="loan_quantity_positive"),
        ]

    def is_overdue_at(self, now):
        return is_overdue_at(self.due_date, self.returned_date, now)

    def days_overdue_at(self, now):
        return days_overdue_at(self.due_date, self.returned_date, now)

    @property
    def is_overdue(self):
        return self.is_overdue_at(timezone.now())

    @property
    def days_overdue(self):
        return self.days_overdue_at(timezone.now())

    @property
    def is_closed(self):
        return self.returned_date is not None or self.status.name in LoanStatus.TERMINAL

    def append_observation(self, tag, text):
        """Add a tagged note below the existing observations; nothing is overwritten."""
        note = f"[{tag}]: {text.strip()}"
        current = (self.observations or "").strip()
        self.observations = f"{current}\n{note}" if current else note

    def __str__(self):
        return f"{self.person} → {self.resource}"
