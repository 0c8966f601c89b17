"""
Package availability: how many units of a package current stock can cover.

max_sellable(P) = min over components of floor(stock / required_quantity),
clamped at zero. A package without components does not depend on stock and
is reported as unbounded (max_sellable is None).

Results sit in Django's cache for STOCK_AVAILABILITY_CACHE_TTL seconds and are
dropped by the ledger whenever a component product moves. Reads across several
products are not taken from one snapshot; a component can move between two
reads. Availability is advisory (display and soft checks), so that window is
accepted.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from django.conf import settings
from django.core.cache import cache

from main.models import Package, Product
from stock.models import StockSettings
from stock.services.base_service import BaseService, NotFoundError, decimal_str
from stock.services.component_graph import ComponentEdge, PackageComponentGraph

logger = logging.getLogger(__name__)

CACHE_KEY = "stock:package_availability:{}"


def cache_ttl() -> int:
    return getattr(settings, "STOCK_AVAILABILITY_CACHE_TTL", 5)


@dataclass(frozen=True)
class ComponentAvailability:
    product_id: int
    product_name: str
    current_stock: Decimal
    required_per_package: Decimal
    max_packages: int

    def to_dict(self):
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "current_stock": decimal_str(self.current_stock),
            "required_per_package": decimal_str(self.required_per_package),
            "max_packages": self.max_packages,
        }


@dataclass(frozen=True)
class AvailabilityResult:
    package_id: int
    package_name: str
    max_sellable: Optional[int]
    bottleneck: Optional[ComponentAvailability]
    components: Tuple[ComponentAvailability, ...] = ()

    @property
    def is_unbounded(self) -> bool:
        return self.max_sellable is None

    def to_dict(self):
        return {
            "package_id": self.package_id,
            "package_name": self.package_name,
            "max_sellable": self.max_sellable,
            "is_unbounded": self.is_unbounded,
            "bottleneck_product": self.bottleneck.to_dict() if self.bottleneck else None,
            "component_availability": [c.to_dict() for c in self.components],
        }


def max_packages_for(current_stock: Decimal, required: Decimal) -> int:
    if current_stock <= 0:
        return 0
    # Both sides positive, so truncating division is floor
    return int(current_stock // required)


def build_result(package_id: int,
                 package_name: str,
                 edges: List[ComponentEdge],
                 products: Dict[int, Tuple[str, Decimal]]) -> AvailabilityResult:
    components = []
    for edge in edges:
        name, stock = products[edge.product_id]
        components.append(ComponentAvailability(
            product_id=edge.product_id,
            product_name=name,
            current_stock=stock,
            required_per_package=edge.required_quantity,
            max_packages=max_packages_for(stock, edge.required_quantity),
        ))

    if not components:
        return AvailabilityResult(package_id, package_name, None, None, ())

    bottleneck = components[0]
    for component in components[1:]:
        # Strictly less: ties go to the first component in display order
        if component.max_packages < bottleneck.max_packages:
            bottleneck = component

    return AvailabilityResult(
        package_id=package_id,
        package_name=package_name,
        max_sellable=bottleneck.max_packages,
        bottleneck=bottleneck,
        components=tuple(components),
    )


class AvailabilityCalculator(BaseService):
    model = Package

    @classmethod
    def calculate(cls, package_id: int, force_refresh: bool = False) -> AvailabilityResult:
        if not force_refresh:
            cached = cache.get(CACHE_KEY.format(package_id))
            if cached is not None:
                return cached

        package = cls.get_or_404(package_id)
        edges = PackageComponentGraph.components_for([package.id])[package.id]
        result = build_result(package.id, package.name, edges, cls._read_products(edges))

        cache.set(CACHE_KEY.format(package.id), result, cache_ttl())
        return result

    @classmethod
    def calculate_many(cls, package_ids: Iterable[int], force_refresh: bool = False) -> Dict[int, AvailabilityResult]:
        package_ids = list(dict.fromkeys(package_ids))
        results = {}

        if not force_refresh:
            cached = cache.get_many([CACHE_KEY.format(pid) for pid in package_ids])
            for pid in package_ids:
                hit = cached.get(CACHE_KEY.format(pid))
                if hit is not None:
                    results[pid] = hit

        missing = [pid for pid in package_ids if pid not in results]
        if missing:
            packages = Package.objects.in_bulk(missing)
            for pid in missing:
                if pid not in packages:
                    raise NotFoundError("Package", pid)

            graph = PackageComponentGraph.components_for(missing)
            all_edges = [edge for edges in graph.values() for edge in edges]
            products = cls._read_products(all_edges)

            fresh = {}
            for pid in missing:
                result = build_result(pid, packages[pid].name, graph[pid], products)
                results[pid] = result
                fresh[CACHE_KEY.format(pid)] = result
            cache.set_many(fresh, cache_ttl())

        return {pid: results[pid] for pid in package_ids}

    @classmethod
    def summaries(cls, package_type: str = None, include_inactive: bool = False,
                  force_refresh: bool = False) -> List[Dict]:
        queryset = Package.objects.all()
        if not include_inactive:
            queryset = queryset.filter(is_active=True)
        if package_type:
            queryset = queryset.filter(package_type=package_type)

        packages = list(queryset.order_by("name", "id"))
        results = cls.calculate_many([p.id for p in packages], force_refresh)
        threshold = StockSettings.load().package_low_stock_threshold

        summaries = []
        for package in packages:
            result = results[package.id]
            summaries.append({
                "package_id": package.id,
                "package_code": package.package_code,
                "package_name": package.name,
                "package_type": package.package_type,
                "max_sellable": result.max_sellable,
                "status": cls.status_for(result.max_sellable, threshold),
                "bottleneck": {
                    "product_id": result.bottleneck.product_id,
                    "product_name": result.bottleneck.product_name,
                    "current_stock": decimal_str(result.bottleneck.current_stock),
                } if result.bottleneck else None,
            })
        return summaries

    @staticmethod
    def status_for(max_sellable: Optional[int], low_stock_threshold: int) -> str:
        if max_sellable is None:
            return "unbounded"
        if max_sellable == 0:
            return "out_of_stock"
        if max_sellable <= low_stock_threshold:
            return "low_stock"
        return "available"

    @staticmethod
    def invalidate(package_ids: Iterable[int]):
        keys = [CACHE_KEY.format(pid) for pid in package_ids]
        if keys:
            cache.delete_many(keys)

    @classmethod
    def invalidate_for_product(cls, product_id: int) -> List[int]:
        # Inactive packages too, they can be switched back on at any time
        package_ids = PackageComponentGraph.packages_using(product_id, active_only=False)
        cls.invalidate(package_ids)
        if package_ids:
            logger.debug("Dropped cached availability for packages %s (product %s)", package_ids, product_id)
        return package_ids

    @staticmethod
    def _read_products(edges: Iterable[ComponentEdge]) -> Dict[int, Tuple[str, Decimal]]:
        """One balance read per distinct product."""
        product_ids = {edge.product_id for edge in edges}
        if not product_ids:
            return {}
        return {
            pid: (name, stock)
            for pid, name, stock in Product.objects.filter(id__in=product_ids).values_list(
                "id", "name", "current_stock"
            )
        }
