import json
from functools import wraps

from django.http import JsonResponse
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from .eligibility import EligibilityEngine
from .exceptions import LoanNotFoundError, LoanStateConflictError, LoanValidationError, error_message
from .inventory import InventoryStore
from .lifecycle import LoanLifecycleService
from .overdue import OverdueSweeper
from .validators import parse_id


def is_staff_user(user):
    """Only staff may operate the circulation desk."""
    return user.is_authenticated and user.is_staff


def staff_required(view):
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse({"detail": "Authentication required"}, status=401)
        if not is_staff_user(request.user):
            return JsonResponse({"detail": "Staff permission required"}, status=403)
        return view(request, *args, **kwargs)

    return wrapper


def loan_errors(view):
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except LoanValidationError as exc:
            return JsonResponse({"detail": error_message(exc), "code": exc.code}, status=400)
        except LoanNotFoundError as exc:
            return JsonResponse({"detail": error_message(exc)}, status=404)
        except LoanStateConflictError as exc:
            return JsonResponse({"detail": error_message(exc)}, status=409)

    return wrapper


def _json_body(request):
    if not request.body:
        return {}
    try:
        body = json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise LoanValidationError("Malformed JSON body", code="invalid_body")
    if not isinstance(body, dict):
        raise LoanValidationError("The JSON body must be an object", code="invalid_body")
    return body


def _parse_int(value, label, default=None):
    if value in (None, ""):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise LoanValidationError(f"{label} must be an integer", code="invalid_parameter")


def _parse_when(value, label):
    if not value:
        return None
    when = parse_datetime(value) if isinstance(value, str) else None
    if when is None:
        raise LoanValidationError(f"{label} must be an ISO 8601 datetime", code="invalid_parameter")
    if timezone.is_naive(when):
        when = timezone.make_aware(when)
    return when


def _parse_flag(value):
    if value in (None, ""):
        return None
    return value.lower() in ("true", "1", "yes")


def _loan_payload(loan, now=None):
    now = now or timezone.now()
    person = loan.person
    resource = loan.resource
    return {
        "id": loan.pk,
        "person_id": loan.person_id,
        "resource_id": loan.resource_id,
        "quantity": loan.quantity,
        "loan_date": loan.loan_date,
        "due_date": loan.due_date,
        "returned_date": loan.returned_date,
        "status": loan.status.name,
        "observations": loan.observations,
        "loaned_by": loan.loaned_by_id,
        "returned_by": loan.returned_by_id,
        "renewed_by": loan.renewed_by_id,
        "renewed_at": loan.renewed_at,
        "is_overdue": loan.is_overdue_at(now),
        "days_overdue": loan.days_overdue_at(now),
        "person": {
            "id": person.pk,
            "full_name": person.full_name,
            "document_number": person.document_number,
            "grade": person.grade,
        },
        "resource": {
            "id": resource.pk,
            "title": resource.title,
            "isbn": resource.isbn,
            "available_quantity": resource.available_quantity,
        },
    }


def _loan_list(loans):
    now = timezone.now()
    return [_loan_payload(loan, now) for loan in loans]


@require_http_methods(["GET", "POST"])
@staff_required
@loan_errors
def loans(request):
    if request.method == "POST":
        return borrow_book(request)

    params = request.GET
    found = LoanLifecycleService().search(
        limit=_parse_int(params.get("limit"), "limit", 100),
        person=_parse_int(params.get("person"), "person"),
        resource=_parse_int(params.get("resource"), "resource"),
        status=params.get("status") or None,
        is_overdue=_parse_flag(params.get("overdue")),
        date_from=_parse_when(params.get("date_from"), "date_from"),
        date_to=_parse_when(params.get("date_to"), "date_to"),
        text=params.get("q", "").strip() or None,
    )
    return JsonResponse({"results": _loan_list(found)})


def borrow_book(request):
    body = _json_body(request)
    loan = LoanLifecycleService().create(
        person_id=body.get("person_id"),
        resource_id=body.get("resource_id"),
        quantity=body.get("quantity", 1),
        observations=body.get("observations", ""),
        actor=request.user,
    )
    loan = LoanLifecycleService().get_loan(loan.pk)
    return JsonResponse(_loan_payload(loan), status=201)


@require_GET
@staff_required
@loan_errors
def loan_detail(request, loan_id):
    return JsonResponse(_loan_payload(LoanLifecycleService().get_loan(loan_id)))


@require_POST
@staff_required
@loan_errors
def renew_loan(request, loan_id):
    body = _json_body(request)
    service = LoanLifecycleService()
    service.renew(loan_id, body.get("additional_days"), actor=request.user)
    return JsonResponse(_loan_payload(service.get_loan(loan_id)))


@require_POST
@staff_required
@loan_errors
def return_book(request, loan_id):
    body = _json_body(request)
    service = LoanLifecycleService()
    summary = service.process_return(
        loan_id,
        actor=request.user,
        return_date=body.get("return_date"),
        resource_condition=body.get("resource_condition") or None,
        return_observations=body.get("return_observations"),
    )
    return JsonResponse(
        {
            "loan": _loan_payload(service.get_loan(loan_id)),
            "days_overdue": summary.days_overdue,
            "was_overdue": summary.was_overdue,
            "resource_condition_changed": summary.resource_condition_changed,
            "message": summary.message,
            "penalty": summary.penalty,
            "resource_condition": summary.resource_condition,
        }
    )


@require_POST
@staff_required
@loan_errors
def mark_lost(request, loan_id):
    body = _json_body(request)
    service = LoanLifecycleService()
    service.mark_as_lost(loan_id, body.get("observations"), actor=request.user)
    return JsonResponse(_loan_payload(service.get_loan(loan_id)))


@require_POST
@staff_required
@loan_errors
def batch_returns(request):
    body = _json_body(request)
    items = body.get("returns")
    if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
        raise LoanValidationError("'returns' must be a list of objects", code="invalid_body")
    results = LoanLifecycleService().process_batch_returns(items, actor=request.user)
    return JsonResponse({"results": results})


@require_GET
@staff_required
def statistics_view(request):
    return JsonResponse(LoanLifecycleService().statistics())


@require_GET
@staff_required
@loan_errors
def pending_returns(request):
    limit = _parse_int(request.GET.get("limit"), "limit", 50)
    return JsonResponse({"results": _loan_list(LoanLifecycleService().pending_returns(limit))})


@require_GET
@staff_required
@loan_errors
def return_history(request):
    history = LoanLifecycleService().return_history(
        start_date=_parse_when(request.GET.get("start"), "start"),
        end_date=_parse_when(request.GET.get("end"), "end"),
        limit=_parse_int(request.GET.get("limit"), "limit", 100),
    )
    return JsonResponse({"results": _loan_list(history)})


@require_GET
@staff_required
def loan_limits(request):
    return JsonResponse(EligibilityEngine().get_configuration_limits())


@require_GET
@staff_required
def can_borrow(request, person_id):
    return JsonResponse(EligibilityEngine().can_person_borrow(person_id))


@require_GET
@staff_required
@loan_errors
def person_loans(request, person_id):
    service = LoanLifecycleService()
    if _parse_flag(request.GET.get("history")):
        found = service.history_by_person(person_id, _parse_int(request.GET.get("limit"), "limit", 50))
    else:
        found = service.find_active_by_person(person_id)
    return JsonResponse({"results": _loan_list(found)})


@require_GET
@staff_required
@loan_errors
def resource_availability(request, resource_id):
    return JsonResponse(EligibilityEngine().get_resource_availability_info(resource_id))


@require_GET
@staff_required
@loan_errors
def resource_max_quantity(request, resource_id):
    return JsonResponse(
        EligibilityEngine().get_max_quantity_for_person(request.GET.get("person"), resource_id)
    )


@require_GET
@staff_required
@loan_errors
def resource_loans(request, resource_id):
    limit = _parse_int(request.GET.get("limit"), "limit", 50)
    return JsonResponse({"results": _loan_list(LoanLifecycleService().history_by_resource(resource_id, limit))})


@require_POST
@staff_required
@loan_errors
def sync_resource_stock(request, resource_id):
    inventory = InventoryStore()
    resource_pk = parse_id(resource_id, "resource")
    if not inventory.sync_current_loans_count(resource_pk):
        raise LoanValidationError("Resource not found", code="resource_not_found")
    return JsonResponse(inventory.get_stock_info(resource_pk).as_dict())


@require_GET
@staff_required
def check_inventory(request):
    inventory = InventoryStore()
    without_stock = [
        {
            "id": resource.pk,
            "title": resource.title,
            "available": resource.available,
            "total_quantity": resource.total_quantity,
            "current_loans_count": resource.current_loans_count,
            "available_quantity": resource.available_quantity,
        }
        for resource in inventory.resources_without_stock()
    ]
    return JsonResponse({"statistics": inventory.stock_statistics(), "without_stock": without_stock})


@require_GET
@staff_required
def check_overdue(request):
    sweeper = OverdueSweeper()
    now = timezone.now()
    return JsonResponse({"results": [sweeper.describe(loan, now) for loan in sweeper.overdue_loans()]})


@require_GET
@staff_required
def overdue_statistics(request):
    return JsonResponse(OverdueSweeper().statistics())


@require_GET
@staff_required
@loan_errors
def near_due(request):
    days = _parse_int(request.GET.get("days"), "days")
    return JsonResponse({"results": _loan_list(OverdueSweeper().find_near_due(days))})


@require_POST
@staff_required
def sweep_overdue(request):
    return JsonResponse({"updated_count": OverdueSweeper().sweep()})
