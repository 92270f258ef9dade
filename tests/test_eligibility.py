from datetime import timedelta

import pytest

from circulation.exceptions import LoanValidationError
from circulation.models import Loan, PersonType, Resource


def error_code(engine, *args):
    with pytest.raises(LoanValidationError) as excinfo:
        engine.validate(*args)
    return excinfo.value.code


def test_valid_request_returns_person_and_resource(eligibility, student, make_resource):
    resource = make_resource()

    person, found = eligibility.validate(student.pk, resource.pk, 1)

    assert person == student
    assert found == resource


@pytest.mark.parametrize(
    "person_id, resource_id, quantity, code",
    [
        ("abc", 1, 1, "invalid_id"),
        (1, 0, 1, "invalid_id"),
        (1, 1, 0, "invalid_quantity"),
        (1, 1, "2", "invalid_quantity"),
        (1, 1, 51, "quantity_ceiling"),
    ],
)
def test_parameter_sanity(eligibility, db, person_id, resource_id, quantity, code):
    assert error_code(eligibility, person_id, resource_id, quantity) == code


def test_person_checks(eligibility, make_person, student_type, make_resource):
    resource = make_resource()
    inactive = make_person(active=False)
    assert error_code(eligibility, 999, resource.pk) == "person_not_found"
    assert error_code(eligibility, inactive.pk, resource.pk) == "person_inactive"

    retired = PersonType.objects.create(name="alumni", active=False)
    alumnus = make_person(person_type=retired)
    assert error_code(eligibility, alumnus.pk, resource.pk) == "person_type_inactive"


def test_resource_checks(eligibility, student, make_resource):
    assert error_code(eligibility, student.pk, 999) == "resource_not_found"

    withdrawn = make_resource(available=False)
    assert error_code(eligibility, student.pk, withdrawn.pk) == "resource_unavailable"

    damaged = make_resource(condition=Resource.Condition.DAMAGED)
    assert error_code(eligibility, student.pk, damaged.pk) == "resource_condition"


def test_deteriorated_resource_can_still_be_loaned(eligibility, student, make_resource):
    resource = make_resource(condition=Resource.Condition.DETERIORATED)

    assert eligibility.validate(student.pk, resource.pk)[1] == resource


def test_last_unit_goes_to_first_student(service, librarian, make_person, make_resource):
    resource = make_resource(total_quantity=1)
    first = make_person(first_name="A")
    second = make_person(first_name="B")

    taken = service.create(first.pk, resource.pk, actor=librarian)

    with pytest.raises(LoanValidationError, match="Requested: 1, available: 0, total: 1") as excinfo:
        service.create(second.pk, resource.pk, actor=librarian)
    assert excinfo.value.code == "insufficient_stock"
    resource.refresh_from_db()
    assert resource.current_loans_count == 1

    service.process_return(taken.pk, actor=librarian)
    resource.refresh_from_db()
    assert resource.current_loans_count == 0

    retry = service.create(second.pk, resource.pk, actor=librarian)
    assert retry.person == second
    resource.refresh_from_db()
    assert resource.current_loans_count == 1
    assert resource.total_loans == 2


def test_stock_counts_units_not_loans(service, eligibility, librarian, teacher, make_person, make_resource):
    resource = make_resource(total_quantity=4)
    service.create(teacher.pk, resource.pk, quantity=3, actor=librarian)

    assert error_code(eligibility, make_person().pk, resource.pk, 2) == "insufficient_stock"
    assert eligibility.validate(make_person().pk, resource.pk, 1)


def test_student_limited_to_one_unit(eligibility, student, make_resource):
    resource = make_resource(total_quantity=5)

    assert error_code(eligibility, student.pk, resource.pk, 2) == "student_quantity_limit"


def test_teacher_can_take_all_available_units(eligibility, teacher, make_resource):
    resource = make_resource(total_quantity=20)

    assert eligibility.validate(teacher.pk, resource.pk, 20)[0] == teacher


def test_teacher_cannot_exceed_available_units(service, eligibility, librarian, student, teacher, make_resource):
    resource = make_resource(total_quantity=4)
    service.create(student.pk, resource.pk, actor=librarian)

    assert error_code(eligibility, teacher.pk, resource.pk, 4) == "insufficient_stock"
    assert eligibility.validate(teacher.pk, resource.pk, 3)[0] == teacher


def test_other_types_use_general_maximum(eligibility, make_person, make_resource):
    staff = make_person(person_type=PersonType.objects.create(name="administrative"))
    resource = make_resource(total_quantity=10)

    assert error_code(eligibility, staff.pk, resource.pk, 6) == "quantity_limit"
    assert eligibility.validate(staff.pk, resource.pk, 5)[0] == staff


def test_person_without_type(eligibility, make_person, make_resource):
    untyped = make_person(person_type=None)

    assert error_code(eligibility, untyped.pk, make_resource().pk) == "person_type_unknown"


def test_active_loan_limit(service, eligibility, librarian, student, make_resource):
    resource = make_resource(total_quantity=10)
    for _ in range(3):
        service.create(student.pk, resource.pk, actor=librarian)

    assert error_code(eligibility, student.pk, resource.pk) == "loan_limit"


def test_overdue_loan_blocks_new_loans(service, eligibility, librarian, student, make_resource, clock):
    resource = make_resource(total_quantity=5)
    service.create(student.pk, resource.pk, actor=librarian)
    clock.advance(days=16)

    with pytest.raises(LoanValidationError, match="1 overdue loan and must return it") as excinfo:
        eligibility.validate(student.pk, resource.pk)
    assert excinfo.value.code == "overdue_loans"


def test_validation_failure_is_logged(eligibility, student, caplog):
    with pytest.raises(LoanValidationError):
        eligibility.validate(student.pk, 999)

    assert "Loan validation failed" in caplog.text


def test_can_person_borrow(service, eligibility, librarian, student, make_resource):
    result = eligibility.can_person_borrow(student.pk)
    assert result == {
        "can_borrow": True,
        "active_loans_count": 0,
        "has_overdue_loans": False,
        "max_loans_allowed": 3,
    }

    resource = make_resource(total_quantity=5)
    for _ in range(3):
        service.create(student.pk, resource.pk, actor=librarian)
    result = eligibility.can_person_borrow(student.pk)
    assert result["can_borrow"] is False
    assert result["reason"] == "The maximum of 3 loans has been reached"


def test_can_person_borrow_reports_overdue(service, eligibility, librarian, student, make_resource):
    loan = service.create(student.pk, make_resource().pk, actor=librarian)
    Loan.objects.filter(pk=loan.pk).update(due_date=loan.loan_date - timedelta(days=1))

    result = eligibility.can_person_borrow(student.pk)

    assert result["can_borrow"] is False
    assert result["has_overdue_loans"] is True
    assert result["reason"] == "The person has overdue loans"


@pytest.mark.parametrize(
    "person_id, reason",
    [("x", "Invalid person id"), (999, "The person does not exist")],
)
def test_can_person_borrow_never_raises(eligibility, db, person_id, reason):
    assert eligibility.can_person_borrow(person_id) == {"can_borrow": False, "reason": reason}


def test_can_person_borrow_inactive(eligibility, make_person):
    person = make_person(active=False)

    assert eligibility.can_person_borrow(person.pk) == {"can_borrow": False, "reason": "The person is not active"}


def test_resource_availability_info(service, eligibility, librarian, teacher, make_resource):
    resource = make_resource(title="Atlas", total_quantity=4)
    service.create(teacher.pk, resource.pk, quantity=3, actor=librarian)

    info = eligibility.get_resource_availability_info(resource.pk)

    assert info == {
        "total_quantity": 4,
        "current_loans": 3,
        "available_quantity": 1,
        "can_loan": True,
        "resource": {"id": resource.pk, "title": "Atlas", "available": True},
    }


def test_max_quantity_per_person_type(eligibility, student, teacher, make_person, make_resource):
    resource = make_resource(total_quantity=8)

    assert eligibility.get_max_quantity_for_person(student.pk, resource.pk)["max_quantity"] == 1
    assert eligibility.get_max_quantity_for_person(teacher.pk, resource.pk)["max_quantity"] == 8

    other = make_person(person_type=PersonType.objects.create(name="administrative"))
    assert eligibility.get_max_quantity_for_person(other.pk, resource.pk)["max_quantity"] == 5

    untyped = make_person(person_type=None)
    assert eligibility.get_max_quantity_for_person(untyped.pk, resource.pk) == {
        "max_quantity": 0,
        "reason": "Could not determine the person type",
        "person_type": "unknown",
    }


def test_max_quantity_is_zero_without_stock(service, eligibility, librarian, student, teacher, make_resource):
    resource = make_resource(total_quantity=1)
    service.create(student.pk, resource.pk, actor=librarian)

    assert eligibility.get_max_quantity_for_person(teacher.pk, resource.pk)["max_quantity"] == 0
