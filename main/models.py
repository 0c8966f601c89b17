"""
Bar POS catalog models: staff users, products and sellable packages.
"""

import uuid as uuid_lib

from django.core.exceptions import ValidationError
from django.db import models


class User(models.Model):
    class RoleChoices(models.TextChoices):
        ADMIN = "ADMIN", "Admin"
        MANAGER = "MANAGER", "Manager"
        CASHIER = "CASHIER", "Cashier"
        BARTENDER = "BARTENDER", "Bartender"
        KITCHEN = "KITCHEN", "Kitchen"
        WAITER = "WAITER", "Waiter"

    class UserStatus(models.TextChoices):
        ACTIVE = "ACTIVE", "Active"
        SUSPENDED = "SUSPENDED", "Suspended"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    first_name = models.CharField(max_length=50)
    last_name = models.CharField(max_length=50, blank=True, default="")
    email = models.EmailField(unique=True)

    role = models.CharField(
        max_length=20,
        choices=RoleChoices.choices,
        default=RoleChoices.CASHIER
    )

    status = models.CharField(
        max_length=10,
        choices=UserStatus.choices,
        default=UserStatus.ACTIVE
    )

    created_at = models.DateTimeField(auto_now_add=True)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self):
        return self.full_name


class Product(models.Model):
    """
    A stocked item sold at the bar or used as a package component.
    current_stock is only ever changed through stock movements.
    """

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    name = models.CharField(max_length=200)
    sku = models.CharField(max_length=50, unique=True, blank=True, null=True)

    current_stock = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    reorder_point = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    reorder_quantity = models.DecimalField(
        max_digits=15, decimal_places=4, null=True, blank=True
    )
    unit_of_measure = models.CharField(max_length=20, default="piece")

    base_price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    cost_price = models.DecimalField(max_digits=12, decimal_places=2, default=0)

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class Package(models.Model):
    """A sellable bundle of component products (VIP packages, promotions)."""

    class PackageType(models.TextChoices):
        VIP_ONLY = "vip_only", "VIP Only"
        REGULAR = "regular", "Regular"
        PROMOTIONAL = "promotional", "Promotional"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    package_code = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    package_type = models.CharField(
        max_length=20, choices=PackageType.choices, default=PackageType.REGULAR
    )
    base_price = models.DecimalField(max_digits=12, decimal_places=2)
    vip_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    cost_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.get_package_type_display()})"


class PackageComponent(models.Model):
    package = models.ForeignKey(
        Package, on_delete=models.CASCADE, related_name="components"
    )
    product = models.ForeignKey(
        Product, on_delete=models.PROTECT, related_name="package_components"
    )
    quantity = models.DecimalField(max_digits=15, decimal_places=4)
    display_order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["display_order", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["package", "product"], name="unique_package_product"
            ),
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0), name="package_component_quantity_positive"
            ),
        ]

    def clean(self):
        if self.quantity is not None and self.quantity <= 0:
            raise ValidationError({"quantity": "Required quantity must be greater than zero"})

    def __str__(self):
        return f"{self.package.name}: {self.quantity} x {self.product.name}"
