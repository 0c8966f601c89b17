from decimal import Decimal
from typing import Any, Dict, List, Optional

from django.db.models import F

from main.models import Product
from stock.services.base_service import decimal_str, to_decimal

CRITICAL_URGENCY = 70
URGENT_URGENCY = 50
MODERATE_URGENCY = 30


class LowStockAlertService:

    @staticmethod
    def stock_status(current_stock: Decimal, reorder_point: Decimal) -> str:
        if current_stock <= 0:
            return "out_of_stock"
        if current_stock <= reorder_point:
            return "low_stock"
        if current_stock <= reorder_point * Decimal("1.5"):
            return "warning"
        return "adequate"

    @staticmethod
    def reorder_quantity(current_stock: Decimal,
                         reorder_point: Decimal,
                         reorder_quantity: Optional[Decimal] = None) -> Decimal:
        if current_stock > reorder_point:
            return Decimal("0")
        if reorder_quantity and reorder_quantity > 0:
            return reorder_quantity
        # Enough to get back to twice the reorder point
        return reorder_point * 2 - current_stock

    @staticmethod
    def urgency(current_stock: Decimal, reorder_point: Decimal) -> int:
        if current_stock <= 0:
            return 100
        if current_stock <= reorder_point * Decimal("0.5"):
            return 90
        if current_stock <= reorder_point * Decimal("0.75"):
            return 70
        if current_stock <= reorder_point:
            return 50
        if current_stock <= reorder_point * Decimal("1.25"):
            return 30
        return 10

    @classmethod
    def low_stock_alerts(cls, critical_only: bool = False) -> List[Dict[str, Any]]:
        products = Product.objects.filter(
            is_active=True, current_stock__lte=F("reorder_point")
        ).order_by("current_stock", "name")

        alerts = []
        for product in products:
            urgency = cls.urgency(product.current_stock, product.reorder_point)
            if critical_only and urgency < CRITICAL_URGENCY:
                continue
            reorder_qty = cls.reorder_quantity(
                product.current_stock, product.reorder_point, product.reorder_quantity
            )
            alerts.append({
                "product_id": product.id,
                "product_name": product.name,
                "sku": product.sku,
                "unit_of_measure": product.unit_of_measure,
                "status": cls.stock_status(product.current_stock, product.reorder_point),
                "current_stock": decimal_str(product.current_stock),
                "reorder_point": decimal_str(product.reorder_point),
                "reorder_quantity": decimal_str(reorder_qty),
                "estimated_cost": decimal_str(reorder_qty * to_decimal(product.cost_price)),
                "urgency": urgency,
            })

        # Stable sort keeps the lowest stock first within an urgency band
        alerts.sort(key=lambda a: a["urgency"], reverse=True)
        return alerts

    @classmethod
    def summary(cls, alerts: Optional[List[Dict[str, Any]]] = None) -> Dict[str, int]:
        if alerts is None:
            alerts = cls.low_stock_alerts()
        return {
            "total": len(alerts),
            "critical": sum(1 for a in alerts if a["urgency"] >= CRITICAL_URGENCY),
            "urgent": sum(1 for a in alerts if URGENT_URGENCY <= a["urgency"] < CRITICAL_URGENCY),
            "moderate": sum(1 for a in alerts if MODERATE_URGENCY <= a["urgency"] < URGENT_URGENCY),
            "low": sum(1 for a in alerts if a["urgency"] < MODERATE_URGENCY),
        }
