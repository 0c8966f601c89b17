from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from stock.models import MovementType
from stock.services.base_service import decimal_str

DEFAULT_LARGE_ADJUSTMENT_PERCENT = Decimal("50")

SIGN_ERRORS = {
    MovementType.STOCK_IN: "Stock In movement must have positive quantity change",
    MovementType.STOCK_OUT: "Stock Out movement must have negative quantity change",
    MovementType.SALE: "Sale movement must have negative quantity change",
    MovementType.VOID_RETURN: "Void Return movement must have positive quantity change",
}

NOT_FINITE_ERROR = "Quantity change must be a finite number"
UNKNOWN_TYPE_ERROR = "Unknown movement type: {}"

# Matches DecimalField(max_digits=15, decimal_places=4) on products and movements
MAX_DECIMAL_PLACES = 4
MAX_INTEGER_DIGITS = 11
PRECISION_ERROR = (
    f"Quantity must have at most {MAX_DECIMAL_PLACES} decimal places and {MAX_INTEGER_DIGITS} integer digits"
)
BALANCE_RANGE_ERROR = "Adjustment would push stock outside the storable range"


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: Optional[str] = None
    warning: Optional[str] = None
    deficit: Optional[Decimal] = None
    current_stock: Optional[Decimal] = None
    quantity_change: Optional[Decimal] = None
    resulting_balance: Optional[Decimal] = None

    def to_dict(self):
        return {
            "valid": self.valid,
            "error": self.error,
            "warning": self.warning,
            "deficit": decimal_str(self.deficit),
            "current_stock": decimal_str(self.current_stock),
            "quantity_change": decimal_str(self.quantity_change),
            "resulting_balance": decimal_str(self.resulting_balance),
        }


def parse_quantity(value: Any) -> Optional[Decimal]:
    """Coerce to a finite Decimal, or None. Booleans are rejected."""
    if value is None or isinstance(value, bool):
        return None
    try:
        quantity = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not quantity.is_finite():
        return None
    return quantity


def fits_quantity_column(value: Decimal) -> bool:
    if value.normalize().as_tuple().exponent < -MAX_DECIMAL_PLACES:
        return False
    return abs(value) < Decimal(10) ** MAX_INTEGER_DIGITS


def parse_movement_type(value: Any) -> Optional[MovementType]:
    try:
        return MovementType(value)
    except ValueError:
        return None


class MovementValidator:
    """
    Sign and balance rules per movement type. Pure: never touches the
    database and never raises for bad input, the caller decides what to do
    with an invalid result.
    """

    @classmethod
    def validate(cls,
                 current_stock: Any,
                 quantity_change: Any,
                 movement_type: Any,
                 allow_negative: bool = False,
                 warning_percent: Decimal = DEFAULT_LARGE_ADJUSTMENT_PERCENT) -> ValidationResult:
        current = parse_quantity(current_stock)
        change = parse_quantity(quantity_change)
        if current is None or change is None:
            return ValidationResult(valid=False, error=NOT_FINITE_ERROR)
        if not fits_quantity_column(change):
            return ValidationResult(
                valid=False, error=PRECISION_ERROR, current_stock=current, quantity_change=change
            )

        kind = parse_movement_type(movement_type)
        if kind is None:
            return ValidationResult(
                valid=False,
                error=UNKNOWN_TYPE_ERROR.format(movement_type),
                current_stock=current,
                quantity_change=change,
            )

        new_balance = current + change
        if not fits_quantity_column(new_balance):
            return ValidationResult(
                valid=False, error=BALANCE_RANGE_ERROR, current_stock=current, quantity_change=change
            )

        error = cls._check_sign(kind, change)
        if error is None:
            error = cls._check_balance(kind, new_balance, allow_negative)

        if error is not None:
            deficit = -new_balance if new_balance < 0 else None
            return ValidationResult(
                valid=False,
                error=error,
                deficit=deficit,
                current_stock=current,
                quantity_change=change,
                resulting_balance=new_balance,
            )

        return ValidationResult(
            valid=True,
            warning=cls._large_change_warning(current, change, warning_percent),
            current_stock=current,
            quantity_change=change,
            resulting_balance=new_balance,
        )

    @staticmethod
    def _check_sign(kind: MovementType, change: Decimal) -> Optional[str]:
        match kind:
            case MovementType.STOCK_IN | MovementType.VOID_RETURN:
                return SIGN_ERRORS[kind] if change <= 0 else None
            case MovementType.STOCK_OUT | MovementType.SALE:
                return SIGN_ERRORS[kind] if change >= 0 else None
            case MovementType.PHYSICAL_COUNT:
                return None

    @staticmethod
    def _check_balance(kind: MovementType, new_balance: Decimal, allow_negative: bool) -> Optional[str]:
        if new_balance >= 0:
            return None
        error = f"Adjustment would result in negative stock ({decimal_str(new_balance)})"
        match kind:
            case MovementType.STOCK_OUT | MovementType.SALE:
                return None if allow_negative else error
            case MovementType.PHYSICAL_COUNT:
                # A count always lands on a real, non-negative quantity
                return error
            case MovementType.STOCK_IN | MovementType.VOID_RETURN:
                # Incoming stock only moves a negative balance towards zero
                return None

    @staticmethod
    def _large_change_warning(current: Decimal, change: Decimal, warning_percent: Decimal) -> Optional[str]:
        if current <= 0:
            return None
        if abs(change) > current * warning_percent / 100:
            return f"Large adjustment: {decimal_str(abs(change))} is more than {decimal_str(Decimal(warning_percent))}% of current stock"
        return None
