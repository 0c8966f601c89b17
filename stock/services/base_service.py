from typing import Dict, Any, Optional, List, Tuple
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from django.db.models import Model


class ServiceError(Exception):
    def __init__(self, message: str, code: str = "ERROR", details: Dict = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class ValidationError(ServiceError):
    def __init__(self, message: str, field: str = None, details: Dict = None):
        super().__init__(message, "VALIDATION_ERROR", details)
        self.field = field


class NotFoundError(ServiceError):
    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} not found: {identifier}",
            "NOT_FOUND",
            {"resource": resource, "identifier": str(identifier)}
        )


class InvalidMovementError(ServiceError):
    def __init__(self, message: str, current_stock: Decimal = None,
                 quantity_change: Decimal = None, deficit: Decimal = None):
        details = {}
        if current_stock is not None:
            details["current_stock"] = decimal_str(current_stock)
        if quantity_change is not None:
            details["quantity_change"] = decimal_str(quantity_change)
        if deficit is not None:
            details["deficit"] = decimal_str(deficit)
        super().__init__(message, "INVALID_MOVEMENT", details)


class ApprovalRequiredError(ServiceError):
    def __init__(self, current_stock: Decimal, quantity_change: Decimal, threshold_percent: Decimal):
        super().__init__(
            "Manager approval required for this stock adjustment",
            "APPROVAL_REQUIRED",
            {
                "current_stock": decimal_str(current_stock),
                "quantity_change": decimal_str(quantity_change),
                "threshold_percent": decimal_str(threshold_percent),
            }
        )


class ConcurrencyConflictError(ServiceError):
    def __init__(self, product_id: Any):
        super().__init__(
            f"Concurrent stock update on product {product_id}, retry the movement",
            "CONCURRENCY_CONFLICT",
            {"product_id": str(product_id)}
        )


def success_response(data: Any = None, message: str = "Success") -> Dict:
    response = {"success": True, "message": message}
    if data is not None:
        if isinstance(data, dict):
            response.update(data)
        else:
            response["data"] = data
    return response


def paginate_queryset(queryset, page: int = 1, per_page: int = 50) -> Tuple[List, Dict]:
    page = max(1, page)
    per_page = min(max(1, per_page), 200)

    total = queryset.count()
    total_pages = (total + per_page - 1) // per_page

    offset = (page - 1) * per_page
    items = list(queryset[offset:offset + per_page])

    return items, {
        "page": page,
        "per_page": per_page,
        "total_items": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1
    }


def to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    if value is None:
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default


def round_decimal(value: Decimal, places: int = 4) -> Decimal:
    if value is None:
        return Decimal("0")
    quantize_str = "0." + "0" * places
    return value.quantize(Decimal(quantize_str), rounding=ROUND_HALF_UP)


def decimal_str(value: Optional[Decimal]) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    # format() keeps "100" from turning into "1E+2"
    return format(value.normalize(), "f")


class BaseService:
    model = None

    @classmethod
    def get_by_id(cls, id: int) -> Optional[Model]:
        try:
            return cls.model.objects.get(id=id)
        except (cls.model.DoesNotExist, ValueError, TypeError):
            return None

    @classmethod
    def get_or_404(cls, id: int) -> Model:
        obj = cls.get_by_id(id)
        if not obj:
            raise NotFoundError(cls.model.__name__, id)
        return obj
