import math
from decimal import Decimal
from typing import Any, Dict, List

from main.models import Package, PackageComponent, Product
from stock.services.availability_service import AvailabilityCalculator
from stock.services.base_service import BaseService, NotFoundError, decimal_str

# Restock suggestion covers this many packages of the hungriest recipe
RESTOCK_PACKAGE_BUFFER = 50


class ImpactIndex(BaseService):
    """Product -> packages that use it, with each package's current headroom."""

    model = Product

    @classmethod
    def product_impact(cls, product_id: int) -> Dict[str, Any]:
        product = cls.get_or_404(product_id)

        components = list(
            PackageComponent.objects.filter(product=product, package__is_active=True)
            .select_related("package")
            .order_by("package__name", "package_id")
        )
        availability = AvailabilityCalculator.calculate_many([c.package_id for c in components])

        affected = []
        for component in components:
            result = availability[component.package_id]
            affected.append({
                "package_id": component.package_id,
                "package_name": component.package.name,
                "package_type": component.package.package_type,
                "quantity_per_package": decimal_str(component.quantity),
                "max_sellable": result.max_sellable,
            })

        return {
            "product_id": product.id,
            "product_name": product.name,
            "current_stock": decimal_str(product.current_stock),
            "affected_packages": affected,
            "total_packages_impacted": len(affected),
            # Packages listed here always have a component, so never unbounded
            "minimum_package_availability": min(
                (p["max_sellable"] for p in affected), default=None
            ),
        }


class BottleneckAnalyzer:

    @classmethod
    def identify_bottlenecks(cls) -> Dict[str, Any]:
        packages = list(Package.objects.filter(is_active=True).order_by("name", "id"))
        results = AvailabilityCalculator.calculate_many([p.id for p in packages])

        grouped: Dict[int, List] = {}
        for package in packages:
            result = results[package.id]
            if result.bottleneck is None:
                continue
            grouped.setdefault(result.bottleneck.product_id, []).append((package, result))

        products = Product.objects.in_bulk(list(grouped))

        bottlenecks = []
        for product_id, entries in grouped.items():
            product = products[product_id]
            affected = []
            for package, result in entries:
                affected.append({
                    "package_id": package.id,
                    "package_name": package.name,
                    "max_sellable": result.max_sellable,
                    "required_per_package": result.bottleneck.required_per_package,
                    "potential_revenue": result.max_sellable * package.base_price,
                })

            total_revenue = sum((p["potential_revenue"] for p in affected), Decimal("0"))
            avg_revenue = total_revenue / len(affected)
            max_required = max(p["required_per_package"] for p in affected)

            bottlenecks.append({
                "product_id": product.id,
                "product_name": product.name,
                "sku": product.sku or "",
                "current_stock": product.current_stock,
                "reorder_point": product.reorder_point,
                "affected_packages": affected,
                "total_packages_affected": len(affected),
                "bottleneck_severity": len(affected) * avg_revenue,
                "total_revenue_impact": total_revenue,
                "optimal_restock": math.ceil(max_required * RESTOCK_PACKAGE_BUFFER),
            })

        bottlenecks.sort(key=lambda b: b["bottleneck_severity"], reverse=True)

        summary = {
            "total_bottlenecks": len(bottlenecks),
            "critical_bottlenecks": sum(
                1 for b in bottlenecks if b["current_stock"] <= b["reorder_point"]
            ),
            "total_packages_affected": sum(b["total_packages_affected"] for b in bottlenecks),
            "total_revenue_at_risk": decimal_str(
                sum((b["total_revenue_impact"] for b in bottlenecks), Decimal("0"))
            ),
        }

        return {
            "bottlenecks": [cls._serialize(b) for b in bottlenecks],
            "summary": summary,
        }

    @staticmethod
    def _serialize(bottleneck: Dict[str, Any]) -> Dict[str, Any]:
        return {
            **bottleneck,
            "current_stock": decimal_str(bottleneck["current_stock"]),
            "reorder_point": decimal_str(bottleneck["reorder_point"]),
            "bottleneck_severity": decimal_str(bottleneck["bottleneck_severity"]),
            "total_revenue_impact": decimal_str(bottleneck["total_revenue_impact"]),
            "affected_packages": [
                {
                    **p,
                    "required_per_package": decimal_str(p["required_per_package"]),
                    "potential_revenue": decimal_str(p["potential_revenue"]),
                }
                for p in bottleneck["affected_packages"]
            ],
        }
