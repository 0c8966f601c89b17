"""
Stock Services - package availability and stock adjustment engine

Usage:
    from stock.services import StockLedgerService, AvailabilityCalculator

    # Record a delivery
    StockLedgerService.apply(product_id=1, quantity_change=24, movement_type="stock_in",
                             reason="purchase", actor=resolve_actor(user_id))

    # How many VIP buckets can still be sold
    AvailabilityCalculator.calculate(package_id=3).max_sellable
"""

# Base utilities
from stock.services.base_service import (
    ServiceError,
    ValidationError,
    NotFoundError,
    InvalidMovementError,
    ApprovalRequiredError,
    ConcurrencyConflictError,
    success_response,
    paginate_queryset,
    to_decimal,
    round_decimal,
    decimal_str,
    BaseService,
)

# Settings
from .settings_service import StockSettingsService

# Actors and rules
from .actors import (
    AuthorizationLevel,
    AuthenticatedActor,
    SystemActor,
    SYSTEM_ACTOR,
    actor_for_user,
    resolve_actor,
)
from .movement_validator import MovementValidator, ValidationResult
from .approval_gate import ApprovalGate

# Packages
from .component_graph import PackageComponentGraph, ComponentEdge
from .availability_service import (
    AvailabilityCalculator,
    AvailabilityResult,
    ComponentAvailability,
)

# Ledger
from .ledger_service import StockLedgerService

# Reporting
from .impact_service import ImpactIndex, BottleneckAnalyzer
from .alert_service import LowStockAlertService

# Order integration
from .order_service import OrderStockService


__all__ = [
    # Base
    "ServiceError",
    "ValidationError",
    "NotFoundError",
    "InvalidMovementError",
    "ApprovalRequiredError",
    "ConcurrencyConflictError",
    "success_response",
    "paginate_queryset",
    "to_decimal",
    "round_decimal",
    "decimal_str",
    "BaseService",

    # Settings
    "StockSettingsService",

    # Actors and rules
    "AuthorizationLevel",
    "AuthenticatedActor",
    "SystemActor",
    "SYSTEM_ACTOR",
    "actor_for_user",
    "resolve_actor",
    "MovementValidator",
    "ValidationResult",
    "ApprovalGate",

    # Packages
    "PackageComponentGraph",
    "ComponentEdge",
    "AvailabilityCalculator",
    "AvailabilityResult",
    "ComponentAvailability",

    # Ledger
    "StockLedgerService",

    # Reporting
    "ImpactIndex",
    "BottleneckAnalyzer",
    "LowStockAlertService",

    # Order integration
    "OrderStockService",
]
