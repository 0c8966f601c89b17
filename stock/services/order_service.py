import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Tuple

from django.db import transaction

from main.models import Package, Product
from stock.models import MovementReason, MovementType
from stock.services.actors import SYSTEM_ACTOR, Actor
from stock.services.base_service import NotFoundError, ValidationError, decimal_str
from stock.services.component_graph import PackageComponentGraph
from stock.services.ledger_service import StockLedgerService
from stock.services.movement_validator import parse_quantity

logger = logging.getLogger(__name__)


class OrderStockService:
    """
    Turns order lines into sale / void_return movements.

    A line is either {"product_id", "quantity"} or {"package_id", "quantity"};
    package lines are expanded into their components. Quantities are summed
    per product so every product moves exactly once per order.
    """

    @classmethod
    def expand_lines(cls, lines: Iterable[Dict[str, Any]]) -> List[Tuple[int, Decimal]]:
        totals: Dict[int, Decimal] = {}
        package_lines = []

        if not isinstance(lines, (list, tuple)):
            raise ValidationError("lines must be a list", "lines")

        for index, line in enumerate(lines):
            if not isinstance(line, dict):
                raise ValidationError(f"Line {index + 1}: must be an object", "lines")

            quantity = parse_quantity(line.get("quantity"))
            if quantity is None or quantity <= 0:
                raise ValidationError(f"Line {index + 1}: quantity must be a positive number", "quantity")

            if line.get("package_id") not in (None, ""):
                package_lines.append((cls._line_id(line, "package_id", index), quantity))
            elif line.get("product_id") not in (None, ""):
                product_id = cls._line_id(line, "product_id", index)
                totals[product_id] = totals.get(product_id, Decimal("0")) + quantity
            else:
                raise ValidationError(f"Line {index + 1}: product_id or package_id is required", "lines")

        if package_lines:
            package_ids = [pid for pid, _ in package_lines]
            known = set(Package.objects.filter(id__in=package_ids).values_list("id", flat=True))
            for pid in package_ids:
                if pid not in known:
                    raise NotFoundError("Package", pid)

            graph = PackageComponentGraph.components_for(package_ids)
            for package_id, quantity in package_lines:
                for edge in graph[package_id]:
                    needed = edge.required_quantity * quantity
                    totals[edge.product_id] = totals.get(edge.product_id, Decimal("0")) + needed

        product_ids = list(totals)
        found = set(Product.objects.filter(id__in=product_ids).values_list("id", flat=True))
        for product_id in product_ids:
            if product_id not in found:
                raise NotFoundError("Product", product_id)

        return list(totals.items())

    @staticmethod
    def _line_id(line: Dict[str, Any], field: str, index: int) -> int:
        value = line[field]
        if isinstance(value, bool):
            raise ValidationError(f"Line {index + 1}: {field} must be an integer", field)
        try:
            return int(str(value))
        except ValueError:
            raise ValidationError(f"Line {index + 1}: {field} must be an integer", field)

    @classmethod
    def check_availability(cls, lines: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
        requirements = cls.expand_lines(lines)
        balances = dict(
            Product.objects.filter(id__in=[pid for pid, _ in requirements]).values_list("id", "current_stock")
        )
        insufficient = [
            {
                "product_id": product_id,
                "requested": decimal_str(quantity),
                "available": decimal_str(balances[product_id]),
            }
            for product_id, quantity in requirements
            if balances[product_id] < quantity
        ]
        return {"available": not insufficient, "insufficient_items": insufficient}

    @classmethod
    @transaction.atomic
    def deduct_for_order(cls,
                         reference_number: str,
                         lines: Iterable[Dict[str, Any]],
                         actor: Actor = SYSTEM_ACTOR,
                         manager_approved: bool = False,
                         allow_negative: bool = False) -> List:
        movements = []
        for product_id, quantity in cls.expand_lines(lines):
            movements.append(StockLedgerService.apply(
                product_id=product_id,
                quantity_change=-quantity,
                movement_type=MovementType.SALE,
                reason=MovementReason.SALE_DEDUCTION,
                actor=actor,
                notes=f"Auto deduction for order {reference_number}",
                reference_number=reference_number,
                manager_approved=manager_approved,
                allow_negative=allow_negative,
            ))

        logger.info("Order %s: deducted stock for %d product(s)", reference_number, len(movements))
        return movements

    @classmethod
    @transaction.atomic
    def return_for_void(cls,
                        reference_number: str,
                        lines: Iterable[Dict[str, Any]],
                        actor: Actor = SYSTEM_ACTOR,
                        manager_approved: bool = False) -> List:
        movements = []
        for product_id, quantity in cls.expand_lines(lines):
            movements.append(StockLedgerService.apply(
                product_id=product_id,
                quantity_change=quantity,
                movement_type=MovementType.VOID_RETURN,
                reason=MovementReason.VOID_RETURN,
                actor=actor,
                notes=f"Stock return for voided order {reference_number}",
                reference_number=reference_number,
                manager_approved=manager_approved,
            ))

        logger.info("Order %s: returned stock for %d product(s)", reference_number, len(movements))
        return movements
