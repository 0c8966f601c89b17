import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from django.db import OperationalError, transaction

from main.models import Product
from stock.models import StockMovement, StockSettings
from stock.services.actors import SYSTEM_ACTOR, Actor, AuthorizationLevel
from stock.services.approval_gate import ApprovalGate
from stock.services.availability_service import AvailabilityCalculator
from stock.services.base_service import (
    BaseService, ConcurrencyConflictError, InvalidMovementError, NotFoundError, ValidationError,
    decimal_str, paginate_queryset, round_decimal
)
from stock.services.movement_validator import (
    MAX_INTEGER_DIGITS, NOT_FINITE_ERROR, PRECISION_ERROR, MovementValidator, fits_quantity_column,
    parse_movement_type, parse_quantity
)

logger = logging.getLogger(__name__)


class StockLedgerService(BaseService):
    """
    The only code path that changes Product.current_stock.

    apply() locks the product row, validates, checks the approval gate, then
    writes the new balance and exactly one StockMovement in the same
    transaction. Either both land or neither does.
    """

    model = StockMovement

    @classmethod
    def apply(cls,
              product_id: int,
              quantity_change: Any,
              movement_type: str,
              reason: str = "",
              actor: Actor = SYSTEM_ACTOR,
              unit_cost: Any = None,
              notes: str = "",
              reference_number: str = "",
              manager_approved: bool = False,
              allow_negative: bool = False) -> StockMovement:
        change = parse_quantity(quantity_change)
        if change is None:
            raise InvalidMovementError(NOT_FINITE_ERROR)
        kind = parse_movement_type(movement_type)
        if kind is None:
            raise InvalidMovementError(f"Unknown movement type: {movement_type}")
        cost = None
        if unit_cost not in (None, ""):
            cost = parse_quantity(unit_cost)
            if cost is None or cost < 0:
                raise ValidationError("unit_cost must be a non-negative number", "unit_cost")
            if not fits_quantity_column(cost):
                raise ValidationError(PRECISION_ERROR, "unit_cost")
            if abs(change) * cost >= Decimal(10) ** MAX_INTEGER_DIGITS:
                raise ValidationError("Total cost is outside the storable range", "unit_cost")

        try:
            with transaction.atomic():
                movement = cls._apply_locked(
                    product_id, change, kind, reason, actor, cost, notes,
                    reference_number, manager_approved, allow_negative,
                )
                transaction.on_commit(
                    lambda: AvailabilityCalculator.invalidate_for_product(movement.product_id)
                )
        except OperationalError as e:
            logger.warning("Lock failure applying %s to product %s: %s", kind, product_id, e)
            raise ConcurrencyConflictError(product_id) from e

        return movement

    @classmethod
    def _apply_locked(cls, product_id, change, kind, reason, actor, cost, notes,
                      reference_number, manager_approved, allow_negative) -> StockMovement:
        try:
            product = Product.objects.select_for_update().get(id=product_id)
        except (Product.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Product", product_id)

        settings = StockSettings.load()
        # The gate still asks for approval on any negative result
        override = allow_negative or settings.allow_negative_stock
        current = product.current_stock

        result = MovementValidator.validate(
            current, change, kind,
            allow_negative=override,
            warning_percent=settings.large_adjustment_warning_percent,
        )
        if not result.valid:
            logger.info("Rejected %s on %s: %s", kind, product.name, result.error)
            raise InvalidMovementError(result.error, current, change, result.deficit)

        approval_required = ApprovalGate.check(
            actor, current, change, kind,
            manager_approved=manager_approved,
            threshold_percent=Decimal(settings.approval_threshold_percent),
        )

        new_balance = result.resulting_balance
        product.current_stock = new_balance
        product.save(update_fields=["current_stock", "updated_at"])

        approver_id = actor.user_id if approval_required and actor.level >= AuthorizationLevel.MANAGER else None

        movement = StockMovement.objects.create(
            product=product,
            movement_type=kind,
            reason=reason or "",
            quantity_change=change,
            quantity_before=current,
            resulting_balance=new_balance,
            unit_cost=cost,
            total_cost=round_decimal(abs(change) * cost) if cost is not None else None,
            reference_number=reference_number or "",
            performed_by_id=actor.user_id,
            approved_by_id=approver_id,
            is_system=actor.is_system,
            notes=notes or "",
        )

        # Invalidated again on commit, see apply()
        AvailabilityCalculator.invalidate_for_product(product.id)

        if result.warning:
            logger.warning("%s: %s", product.name, result.warning)
        logger.info(
            "Stock %s on %s: %s -> %s (%s) by %s",
            kind, product.name, decimal_str(current), decimal_str(new_balance),
            reason or "-", "system" if actor.is_system else f"user {actor.user_id}",
        )
        return movement

    @classmethod
    def get_balance(cls, product_id: int) -> Decimal:
        balance = Product.objects.filter(id=product_id).values_list("current_stock", flat=True).first()
        if balance is None:
            raise NotFoundError("Product", product_id)
        return balance

    @classmethod
    def list_movements(cls,
                       product_id: int = None,
                       movement_type: str = None,
                       date_from: date = None,
                       date_to: date = None,
                       reference_number: str = None,
                       page: int = 1,
                       per_page: int = 50) -> Tuple[List[StockMovement], Dict]:
        queryset = cls.model.objects.select_related("product", "performed_by", "approved_by")

        if product_id:
            queryset = queryset.filter(product_id=product_id)

        if movement_type:
            if parse_movement_type(movement_type) is None:
                raise ValidationError(f"Invalid movement type: {movement_type}", "movement_type")
            queryset = queryset.filter(movement_type=movement_type)

        if date_from:
            queryset = queryset.filter(created_at__date__gte=date_from)

        if date_to:
            queryset = queryset.filter(created_at__date__lte=date_to)

        if reference_number:
            queryset = queryset.filter(reference_number=reference_number)

        queryset = queryset.order_by("-created_at", "-id")
        return paginate_queryset(queryset, page, per_page)

    @classmethod
    def serialize(cls, movement: StockMovement) -> Dict[str, Any]:
        return {
            "id": movement.id,
            "uuid": str(movement.uuid),
            "product_id": movement.product_id,
            "product_name": movement.product.name,
            "movement_type": movement.movement_type,
            "movement_type_display": movement.get_movement_type_display(),
            "reason": movement.reason,
            "quantity_change": decimal_str(movement.quantity_change),
            "quantity_before": decimal_str(movement.quantity_before),
            "resulting_balance": decimal_str(movement.resulting_balance),
            "unit_cost": decimal_str(movement.unit_cost),
            "total_cost": decimal_str(movement.total_cost),
            "reference_number": movement.reference_number,
            "performed_by": {
                "id": movement.performed_by.id,
                "name": movement.performed_by.full_name,
            } if movement.performed_by_id else None,
            "approved_by": {
                "id": movement.approved_by.id,
                "name": movement.approved_by.full_name,
            } if movement.approved_by_id else None,
            "is_system": movement.is_system,
            "notes": movement.notes,
            "created_at": movement.created_at.isoformat(),
        }

    @classmethod
    def verify_ledger(cls, product_id: int) -> Dict[str, Any]:
        """
        Replay a product's movements oldest first and check every snapshot.
        The opening balance is taken from the first movement's quantity_before.
        """
        try:
            product = Product.objects.get(id=product_id)
        except (Product.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Product", product_id)

        movements = StockMovement.objects.filter(product_id=product.id).order_by("created_at", "id")
        mismatches = []
        running: Optional[Decimal] = None
        count = 0

        for movement in movements.iterator():
            count += 1
            if running is None:
                running = movement.quantity_before
            elif movement.quantity_before != running:
                mismatches.append({
                    "movement_id": movement.id,
                    "field": "quantity_before",
                    "expected": decimal_str(running),
                    "recorded": decimal_str(movement.quantity_before),
                })
            running = running + movement.quantity_change
            if movement.resulting_balance != running:
                mismatches.append({
                    "movement_id": movement.id,
                    "field": "resulting_balance",
                    "expected": decimal_str(running),
                    "recorded": decimal_str(movement.resulting_balance),
                })
                running = movement.resulting_balance

        balance_matches = running is None or running == product.current_stock
        return {
            "product_id": product.id,
            "product_name": product.name,
            "movement_count": count,
            "current_stock": decimal_str(product.current_stock),
            "replayed_balance": decimal_str(running),
            "balance_matches": balance_matches,
            "mismatches": mismatches,
            "is_consistent": balance_matches and not mismatches,
        }
