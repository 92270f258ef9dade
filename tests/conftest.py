import itertools
from datetime import datetime, timedelta, timezone

import pytest

from circulation.eligibility import EligibilityEngine
from circulation.inventory import InventoryStore
from circulation.lifecycle import LoanLifecycleService
from circulation.models import Person, PersonType, Resource
from circulation.overdue import OverdueSweeper

_documents = itertools.count(1000)


class FrozenClock:
    """A clock that only moves when a test moves it."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def librarian(django_user_model):
    return django_user_model.objects.create_user(username="librarian", password="secret", is_staff=True)


@pytest.fixture
def student_type(db):
    return PersonType.objects.get_or_create(name=PersonType.STUDENT)[0]


@pytest.fixture
def teacher_type(db):
    return PersonType.objects.get_or_create(name=PersonType.TEACHER)[0]


@pytest.fixture
def make_person(db, student_type):
    def make(person_type=student_type, **kwargs):
        kwargs.setdefault("first_name", "Ana")
        kwargs.setdefault("last_name", "Pérez")
        kwargs.setdefault("document_number", str(next(_documents)))
        return Person.objects.create(person_type=person_type, **kwargs)

    return make


@pytest.fixture
def make_resource(db):
    def make(**kwargs):
        kwargs.setdefault("title", "Cien años de soledad")
        kwargs.setdefault("total_quantity", 1)
        return Resource.objects.create(**kwargs)

    return make


@pytest.fixture
def student(make_person):
    return make_person(first_name="Sofía", grade="5A")


@pytest.fixture
def teacher(make_person, teacher_type):
    return make_person(first_name="Carlos", person_type=teacher_type)


@pytest.fixture
def eligibility(clock):
    return EligibilityEngine(clock=clock)


@pytest.fixture
def inventory(clock):
    return InventoryStore(clock=clock)


@pytest.fixture
def service(clock):
    return LoanLifecycleService(clock=clock)


@pytest.fixture
def sweeper(clock):
    return OverdueSweeper(clock=clock)
