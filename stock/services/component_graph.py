import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List

from django.db import IntegrityError, transaction

from main.models import Package, PackageComponent, Product
from stock.services.base_service import (
    BaseService, NotFoundError, ValidationError, decimal_str
)
from stock.services.movement_validator import PRECISION_ERROR, fits_quantity_column, parse_quantity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComponentEdge:
    product_id: int
    required_quantity: Decimal

    def to_dict(self):
        return {
            "product_id": self.product_id,
            "required_quantity": decimal_str(self.required_quantity),
        }


def edge_for(component: PackageComponent) -> ComponentEdge:
    return ComponentEdge(product_id=component.product_id, required_quantity=component.quantity)


class PackageComponentGraph(BaseService):
    """
    Packages point at products, never at other packages, so this is a
    bipartite relation and needs no cycle handling. Edge order is
    (display_order, id), which is what makes bottleneck tie-breaks stable.
    """

    model = Package

    @classmethod
    def components_of(cls, package_id: int) -> List[ComponentEdge]:
        cls.get_or_404(package_id)
        components = PackageComponent.objects.filter(package_id=package_id).order_by("display_order", "id")
        return [edge_for(c) for c in components]

    @classmethod
    def packages_using(cls, product_id: int, active_only: bool = True) -> List[int]:
        queryset = PackageComponent.objects.filter(product_id=product_id)
        if active_only:
            queryset = queryset.filter(package__is_active=True)
        return list(
            queryset.order_by("package_id").values_list("package_id", flat=True).distinct()
        )

    @classmethod
    def components_for(cls, package_ids: Iterable[int]) -> Dict[int, List[ComponentEdge]]:
        package_ids = list(dict.fromkeys(package_ids))
        graph = {package_id: [] for package_id in package_ids}
        components = PackageComponent.objects.filter(
            package_id__in=package_ids
        ).order_by("package_id", "display_order", "id")
        for component in components:
            graph[component.package_id].append(edge_for(component))
        return graph

    @classmethod
    def reverse_index(cls, active_only: bool = True) -> Dict[int, List[int]]:
        """product_id -> package ids, built in one pass over all edges."""
        queryset = PackageComponent.objects.all()
        if active_only:
            queryset = queryset.filter(package__is_active=True)
        index = defaultdict(list)
        for product_id, package_id in queryset.order_by("package_id").values_list("product_id", "package_id"):
            index[product_id].append(package_id)
        return dict(index)

    @classmethod
    @transaction.atomic
    def add_component(cls, package_id: int, product_id: int, quantity, display_order: int = None) -> ComponentEdge:
        package = cls.get_or_404(package_id)
        if not Product.objects.filter(id=product_id).exists():
            raise NotFoundError("Product", product_id)

        quantity = parse_quantity(quantity)
        if quantity is None or quantity <= 0:
            raise ValidationError("Required quantity must be greater than zero", "quantity")
        if not fits_quantity_column(quantity):
            raise ValidationError(PRECISION_ERROR, "quantity")

        if display_order is None:
            display_order = package.components.count()

        try:
            with transaction.atomic():
                component = PackageComponent.objects.create(
                    package=package,
                    product_id=product_id,
                    quantity=quantity,
                    display_order=display_order,
                )
        except IntegrityError:
            raise ValidationError(
                f"Product {product_id} is already a component of package {package_id}", "product_id"
            )

        cls._invalidate(package_id)
        logger.info("Package %s: added product %s x %s", package.package_code, product_id, quantity)
        return edge_for(component)

    @classmethod
    @transaction.atomic
    def remove_component(cls, package_id: int, product_id: int) -> bool:
        package = cls.get_or_404(package_id)
        deleted, _ = PackageComponent.objects.filter(package=package, product_id=product_id).delete()
        if not deleted:
            raise NotFoundError("Package component", f"{package_id}/{product_id}")

        cls._invalidate(package_id)
        logger.info("Package %s: removed product %s", package.package_code, product_id)
        return True

    @staticmethod
    def _invalidate(package_id: int):
        from stock.services.availability_service import AvailabilityCalculator
        AvailabilityCalculator.invalidate([package_id])
        transaction.on_commit(lambda: AvailabilityCalculator.invalidate([package_id]))
