from decimal import Decimal
from typing import Any, Optional

from stock.models import MovementType, StockSettings
from stock.services.actors import Actor, AuthorizationLevel
from stock.services.base_service import ApprovalRequiredError
from stock.services.movement_validator import parse_movement_type, parse_quantity

DEFAULT_THRESHOLD_PERCENT = Decimal("10")

# Order-driven movements mirror what was rung up at the till
ORDER_MOVEMENTS = (MovementType.SALE, MovementType.VOID_RETURN)


class ApprovalGate:

    @classmethod
    def threshold(cls) -> Decimal:
        return Decimal(StockSettings.load().approval_threshold_percent)

    @classmethod
    def requires_approval(cls,
                          current_stock: Any,
                          quantity_change: Any,
                          movement_type: Any = None,
                          threshold_percent: Optional[Decimal] = None) -> bool:
        current = parse_quantity(current_stock)
        change = parse_quantity(quantity_change)
        if current is None or change is None:
            return False

        if threshold_percent is None:
            threshold_percent = DEFAULT_THRESHOLD_PERCENT
        new_balance = current + change

        if new_balance < 0:
            return True

        if parse_movement_type(movement_type) in ORDER_MOVEMENTS:
            return False

        if current > 0 and change < 0 and new_balance == 0:
            return True

        if current <= 0:
            return False

        return abs(change) / current * 100 > Decimal(threshold_percent)

    @staticmethod
    def is_satisfied(actor: Actor, manager_approved: bool = False) -> bool:
        return manager_approved or actor.level >= AuthorizationLevel.MANAGER

    @classmethod
    def check(cls,
              actor: Actor,
              current_stock: Decimal,
              quantity_change: Decimal,
              movement_type: Any = None,
              manager_approved: bool = False,
              threshold_percent: Optional[Decimal] = None) -> bool:
        """
        Raise ApprovalRequiredError when the movement needs a manager and
        neither the actor nor an explicit approval covers it. Returns whether
        approval was required at all.
        """
        if threshold_percent is None:
            threshold_percent = cls.threshold()
        required = cls.requires_approval(current_stock, quantity_change, movement_type, threshold_percent)
        if required and not cls.is_satisfied(actor, manager_approved):
            raise ApprovalRequiredError(current_stock, quantity_change, threshold_percent)
        return required
