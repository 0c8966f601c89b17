import logging
from datetime import date

from django.http import JsonResponse
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema
from rest_framework.exceptions import ParseError, ValidationError as DRFValidationError
from rest_framework.fields import BooleanField
from rest_framework.views import APIView

from stock.services import (
    ValidationError, NotFoundError, InvalidMovementError,
    ApprovalRequiredError, ConcurrencyConflictError,
    StockSettingsService, StockLedgerService, MovementValidator, ApprovalGate,
    PackageComponentGraph, AvailabilityCalculator, ImpactIndex, BottleneckAnalyzer,
    LowStockAlertService, OrderStockService, resolve_actor, decimal_str,
)

logger = logging.getLogger(__name__)


def error_response(message: str, code: str = "error", status: int = 400, details: dict = None):
    data = {"success": False, "error": {"code": code, "message": message}}
    if details:
        data["error"]["details"] = details
    return JsonResponse(data, status=status)


def handle_service_error(e: Exception):
    if isinstance(e, ValidationError):
        return error_response(str(e), "validation_error", 400, {"field": e.field, **e.details})
    elif isinstance(e, NotFoundError):
        return error_response(str(e), "not_found", 404, e.details)
    elif isinstance(e, InvalidMovementError):
        return error_response(str(e), "invalid_movement", 400, e.details)
    elif isinstance(e, ApprovalRequiredError):
        return error_response(str(e), "approval_required", 403, e.details)
    elif isinstance(e, ConcurrencyConflictError):
        return error_response(str(e), "concurrency_conflict", 409, e.details)
    elif isinstance(e, KeyError):
        return error_response(f"Missing required field: {e.args[0]}", "validation_error", 400,
                              {"field": e.args[0]})
    else:
        logger.exception("Unhandled error in stock API")
        return error_response("Internal server error", "server_error", 500)


def query_int(request, name: str, default: int = None):
    value = request.GET.get(name)
    if value in (None, ""):
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} must be an integer", name)


def body_flag(data: dict, name: str) -> bool:
    value = data.get(name, False)
    try:
        return BooleanField().to_internal_value(value)
    except DRFValidationError:
        raise ValidationError(f"{name} must be true or false", name)


def query_date(request, name: str):
    value = request.GET.get(name)
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{name} must be a date (YYYY-MM-DD)", name)


@extend_schema(tags=["Stock"], request=OpenApiTypes.OBJECT, responses=OpenApiTypes.OBJECT)
class BaseStockView(APIView):

    def get_json_body(self, request):
        try:
            data = request.data
        except ParseError:
            return {}
        return data if isinstance(data, dict) else {}

    def get_actor(self, data: dict):
        return resolve_actor(data.get("user_id"))

    def success(self, data: dict, status: int = 200):
        return JsonResponse({"success": True, **data}, status=status)


# ==================== SETTINGS ====================

class StockSettingsView(BaseStockView):
    """GET/PUT /api/stock/settings/"""

    def get(self, request):
        try:
            result = StockSettingsService.get_all()
            return self.success({"settings": result})
        except Exception as e:
            return handle_service_error(e)

    def put(self, request):
        try:
            data = self.get_json_body(request)
            result = StockSettingsService.update(**data)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


# ==================== LEDGER ====================

class StockAdjustView(BaseStockView):
    """POST /api/stock/adjust/"""

    def post(self, request):
        try:
            data = self.get_json_body(request)
            movement = StockLedgerService.apply(
                product_id=data["product_id"],
                quantity_change=data["quantity_change"],
                movement_type=data["movement_type"],
                reason=data.get("reason", ""),
                actor=self.get_actor(data),
                unit_cost=data.get("unit_cost"),
                notes=data.get("notes", ""),
                reference_number=data.get("reference_number", ""),
                manager_approved=body_flag(data, "manager_approved"),
                allow_negative=body_flag(data, "allow_negative"),
            )
            return self.success({"movement": StockLedgerService.serialize(movement)}, 201)
        except Exception as e:
            return handle_service_error(e)


class StockValidateView(BaseStockView):
    """POST /api/stock/validate/ - dry run of an adjustment, nothing is written"""

    def post(self, request):
        try:
            data = self.get_json_body(request)
            current = StockLedgerService.get_balance(data["product_id"])
            settings = StockSettingsService.load()
            allow_negative = body_flag(data, "allow_negative") or settings.allow_negative_stock

            result = MovementValidator.validate(
                current, data["quantity_change"], data["movement_type"],
                allow_negative=allow_negative,
                warning_percent=settings.large_adjustment_warning_percent,
            )
            requires_approval = result.valid and ApprovalGate.requires_approval(
                current, result.quantity_change, data["movement_type"],
                settings.approval_threshold_percent,
            )
            return self.success({
                "validation": result.to_dict(),
                "requires_approval": requires_approval,
            })
        except Exception as e:
            return handle_service_error(e)


class ProductBalanceView(BaseStockView):
    """GET /api/stock/products/<id>/balance/"""

    def get(self, request, product_id):
        try:
            balance = StockLedgerService.get_balance(product_id)
            return self.success({"product_id": product_id, "current_stock": decimal_str(balance)})
        except Exception as e:
            return handle_service_error(e)


class ProductPackageImpactView(BaseStockView):
    """GET /api/stock/products/<id>/package-impact/"""

    def get(self, request, product_id):
        try:
            return self.success({"impact": ImpactIndex.product_impact(product_id)})
        except Exception as e:
            return handle_service_error(e)


class MovementListView(BaseStockView):
    """GET /api/stock/movements/"""

    def get(self, request):
        try:
            movements, pagination = StockLedgerService.list_movements(
                product_id=query_int(request, "product_id"),
                movement_type=request.GET.get("movement_type"),
                date_from=query_date(request, "date_from"),
                date_to=query_date(request, "date_to"),
                reference_number=request.GET.get("reference_number"),
                page=query_int(request, "page", 1),
                per_page=query_int(request, "per_page", 50),
            )
            return self.success({
                "movements": [StockLedgerService.serialize(m) for m in movements],
                "pagination": pagination,
            })
        except Exception as e:
            return handle_service_error(e)


class LedgerVerifyView(BaseStockView):
    """GET /api/stock/products/<id>/verify-ledger/"""

    def get(self, request, product_id):
        try:
            return self.success({"report": StockLedgerService.verify_ledger(product_id)})
        except Exception as e:
            return handle_service_error(e)


# ==================== PACKAGES ====================

class PackageAvailabilityListView(BaseStockView):
    """GET /api/stock/packages/availability/"""

    def get(self, request):
        try:
            force_refresh = request.GET.get("force_refresh", "false").lower() == "true"
            ids = request.GET.get("ids")

            if ids:
                try:
                    package_ids = [int(pid) for pid in ids.split(",") if pid.strip()]
                except ValueError:
                    raise ValidationError("ids must be a comma separated list of integers", "ids")
                results = AvailabilityCalculator.calculate_many(package_ids, force_refresh)
                return self.success({"packages": [r.to_dict() for r in results.values()]})

            summaries = AvailabilityCalculator.summaries(
                package_type=request.GET.get("package_type"),
                include_inactive=request.GET.get("include_inactive", "false").lower() == "true",
                force_refresh=force_refresh,
            )
            return self.success({
                "packages": summaries,
                "count": len(summaries),
            })
        except Exception as e:
            return handle_service_error(e)


class PackageAvailabilityView(BaseStockView):
    """GET /api/stock/packages/<id>/availability/"""

    def get(self, request, package_id):
        try:
            force_refresh = request.GET.get("force_refresh", "false").lower() == "true"
            result = AvailabilityCalculator.calculate(package_id, force_refresh)
            return self.success({"availability": result.to_dict()})
        except Exception as e:
            return handle_service_error(e)


class PackageComponentsView(BaseStockView):
    """GET/POST /api/stock/packages/<id>/components/"""

    def get(self, request, package_id):
        try:
            edges = PackageComponentGraph.components_of(package_id)
            return self.success({
                "package_id": package_id,
                "components": [e.to_dict() for e in edges],
            })
        except Exception as e:
            return handle_service_error(e)

    def post(self, request, package_id):
        try:
            data = self.get_json_body(request)
            edge = PackageComponentGraph.add_component(
                package_id=package_id,
                product_id=data["product_id"],
                quantity=data["quantity"],
                display_order=data.get("display_order"),
            )
            return self.success({"component": edge.to_dict()}, 201)
        except Exception as e:
            return handle_service_error(e)


class PackageComponentDetailView(BaseStockView):
    """DELETE /api/stock/packages/<id>/components/<product_id>/"""

    def delete(self, request, package_id, product_id):
        try:
            PackageComponentGraph.remove_component(package_id, product_id)
            return self.success({"deleted": True})
        except Exception as e:
            return handle_service_error(e)


# ==================== REPORTS ====================

class LowStockView(BaseStockView):
    """GET /api/stock/low-stock/"""

    def get(self, request):
        try:
            critical_only = request.GET.get("critical_only", "false").lower() == "true"
            alerts = LowStockAlertService.low_stock_alerts(critical_only=critical_only)
            return self.success({
                "alerts": alerts,
                "count": len(alerts),
                "summary": LowStockAlertService.summary(None if critical_only else alerts),
            })
        except Exception as e:
            return handle_service_error(e)


class BottleneckView(BaseStockView):
    """GET /api/stock/bottlenecks/"""

    def get(self, request):
        try:
            return self.success(BottleneckAnalyzer.identify_bottlenecks())
        except Exception as e:
            return handle_service_error(e)


# ==================== ORDERS ====================

class OrderDeductView(BaseStockView):
    """POST /api/stock/orders/deduct/"""

    def post(self, request):
        try:
            data = self.get_json_body(request)
            movements = OrderStockService.deduct_for_order(
                reference_number=data["reference_number"],
                lines=data["lines"],
                actor=self.get_actor(data),
                manager_approved=body_flag(data, "manager_approved"),
                allow_negative=body_flag(data, "allow_negative"),
            )
            return self.success({
                "reference_number": data["reference_number"],
                "movements": [StockLedgerService.serialize(m) for m in movements],
            }, 201)
        except Exception as e:
            return handle_service_error(e)


class OrderVoidView(BaseStockView):
    """POST /api/stock/orders/void/"""

    def post(self, request):
        try:
            data = self.get_json_body(request)
            movements = OrderStockService.return_for_void(
                reference_number=data["reference_number"],
                lines=data["lines"],
                actor=self.get_actor(data),
                manager_approved=body_flag(data, "manager_approved"),
            )
            return self.success({
                "reference_number": data["reference_number"],
                "movements": [StockLedgerService.serialize(m) for m in movements],
            }, 201)
        except Exception as e:
            return handle_service_error(e)


class OrderCheckView(BaseStockView):
    """POST /api/stock/orders/check/"""

    def post(self, request):
        try:
            data = self.get_json_body(request)
            return self.success(OrderStockService.check_availability(data["lines"]))
        except Exception as e:
            return handle_service_error(e)
