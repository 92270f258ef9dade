import pytest

from circulation.exceptions import LoanValidationError
from circulation.models import Resource


def test_increment_updates_counters_and_last_loan_date(inventory, make_resource, clock):
    resource = make_resource(total_quantity=3)

    assert inventory.increment_loaned(resource.pk, 2) is True

    resource.refresh_from_db()
    assert resource.current_loans_count == 2
    assert resource.total_loans == 2
    assert resource.last_loan_date == clock()
    assert resource.available_quantity == 1


def test_increment_refuses_past_total(inventory, make_resource):
    resource = make_resource(total_quantity=2)
    assert inventory.increment_loaned(resource.pk, 2) is True

    assert inventory.increment_loaned(resource.pk, 1) is False

    resource.refresh_from_db()
    assert resource.current_loans_count == 2
    assert resource.total_loans == 2


def test_increment_missing_resource_returns_false(inventory, db):
    assert inventory.increment_loaned(999, 1) is False


def test_decrement_subtracts(inventory, make_resource):
    resource = make_resource(total_quantity=3, current_loans_count=3)

    assert inventory.decrement_loaned(resource.pk, 2) is True

    resource.refresh_from_db()
    assert resource.current_loans_count == 1


def test_decrement_below_zero_resets_counter(inventory, make_resource):
    resource = make_resource(total_quantity=3, current_loans_count=1)

    assert inventory.decrement_loaned(resource.pk, 2) is True

    resource.refresh_from_db()
    assert resource.current_loans_count == 0


def test_decrement_missing_resource_returns_false(inventory, db):
    assert inventory.decrement_loaned(999, 1) is False


def test_total_loans_is_not_decremented(inventory, make_resource):
    resource = make_resource(total_quantity=1)
    inventory.increment_loaned(resource.pk, 1)
    inventory.decrement_loaned(resource.pk, 1)

    resource.refresh_from_db()
    assert resource.current_loans_count == 0
    assert resource.total_loans == 1


def test_stock_info(inventory, make_resource):
    resource = make_resource(total_quantity=4, current_loans_count=1)

    info = inventory.get_stock_info(resource.pk)

    assert info.as_dict() == {
        "total_quantity": 4,
        "current_loans_count": 1,
        "available_quantity": 3,
        "has_stock": True,
    }
    assert inventory.get_stock_info(999) is None


def test_unavailable_resource_has_no_stock(inventory, make_resource):
    resource = make_resource(total_quantity=4)
    inventory.set_availability(resource.pk, False)

    assert inventory.get_stock_info(resource.pk).has_stock is False


def test_set_condition(inventory, make_resource):
    resource = make_resource()

    assert inventory.set_condition(resource.pk, Resource.Condition.DAMAGED, available=False) is True

    resource.refresh_from_db()
    assert resource.condition == Resource.Condition.DAMAGED
    assert resource.available is False


def test_set_condition_rejects_unknown_value(inventory, make_resource):
    resource = make_resource()

    with pytest.raises(LoanValidationError) as excinfo:
        inventory.set_condition(resource.pk, "burnt")
    assert excinfo.value.code == "invalid_condition"


def test_update_total_quantity(inventory, make_resource):
    resource = make_resource(total_quantity=2, current_loans_count=2)

    updated = inventory.update_total_quantity(resource.pk, 5)

    assert updated.total_quantity == 5
    assert updated.available_quantity == 3


@pytest.mark.parametrize("new_total, code", [(0, "invalid_total_quantity"), (1, "total_below_loans")])
def test_update_total_quantity_rejections(inventory, make_resource, new_total, code):
    resource = make_resource(total_quantity=3, current_loans_count=2)

    with pytest.raises(LoanValidationError) as excinfo:
        inventory.update_total_quantity(resource.pk, new_total)
    assert excinfo.value.code == code

    resource.refresh_from_db()
    assert resource.total_quantity == 3


def test_update_total_quantity_missing_resource(inventory, db):
    with pytest.raises(LoanValidationError) as excinfo:
        inventory.update_total_quantity(999, 3)
    assert excinfo.value.code == "resource_not_found"


def test_find_by_isbn(inventory, make_resource):
    resource = make_resource(isbn="9780307474728")

    assert inventory.find_by_isbn(" 9780307474728 ") == resource
    assert inventory.find_by_isbn("") is None
    assert inventory.find_by_isbn("0000000000") is None


def test_sync_counts_from_outstanding_loans(service, inventory, librarian, student, make_resource):
    resource = make_resource(total_quantity=3)
    service.create(student.pk, resource.pk, actor=librarian)
    Resource.objects.filter(pk=resource.pk).update(current_loans_count=3)

    assert inventory.sync_current_loans_count(resource.pk) is True

    resource.refresh_from_db()
    assert resource.current_loans_count == 1


def test_reconcile_all_only_touches_drifted_resources(service, inventory, librarian, student, make_resource):
    in_sync = make_resource(title="Atlas", total_quantity=2)
    drifted = make_resource(title="Ajedrez", total_quantity=2)
    service.create(student.pk, in_sync.pk, actor=librarian)
    Resource.objects.filter(pk=drifted.pk).update(current_loans_count=2)

    assert inventory.reconcile_all() == 1

    drifted.refresh_from_db()
    in_sync.refresh_from_db()
    assert drifted.current_loans_count == 0
    assert in_sync.current_loans_count == 1


def test_stock_statistics(inventory, make_resource):
    make_resource(title="A", total_quantity=3, current_loans_count=1)
    make_resource(title="B", total_quantity=2, current_loans_count=2)
    make_resource(title="C", total_quantity=1, available=False)

    stats = inventory.stock_statistics()

    assert stats == {
        "total_resources": 3,
        "total_units": 6,
        "loaned_units": 3,
        "resources_with_stock": 1,
        "resources_without_stock": 2,
        "available_units": 3,
    }
    assert [r.title for r in inventory.resources_with_stock()] == ["A"]
    assert [r.title for r in inventory.resources_without_stock()] == ["B", "C"]
