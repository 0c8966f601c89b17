import uuid as uuid_lib

from django.db import models

from main.models import Product, User


class MovementType(models.TextChoices):
    STOCK_IN = "stock_in", "Stock In"
    STOCK_OUT = "stock_out", "Stock Out"
    PHYSICAL_COUNT = "physical_count", "Physical Count"
    SALE = "sale", "Sale"
    VOID_RETURN = "void_return", "Void Return"


class MovementReason(models.TextChoices):
    PURCHASE = "purchase", "Purchase"
    DAMAGED = "damaged", "Damaged"
    EXPIRED = "expired", "Expired"
    THEFT = "theft", "Theft"
    WASTE = "waste", "Waste"
    COUNT_CORRECTION = "count_correction", "Count Correction"
    SALE_DEDUCTION = "sale_deduction", "Sale Deduction"
    VOID_RETURN = "void_return", "Void Return"
    OTHER = "other", "Other"


class StockMovement(models.Model):
    """
    Append-only ledger entry. One row per StockLedgerService.apply() call;
    resulting_balance is the product's current_stock right after the change.
    """

    MovementType = MovementType

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    product = models.ForeignKey(
        Product, on_delete=models.PROTECT, related_name="stock_movements"
    )
    movement_type = models.CharField(
        max_length=20, choices=MovementType.choices, db_index=True
    )
    reason = models.CharField(max_length=255, blank=True, default="")

    quantity_change = models.DecimalField(max_digits=15, decimal_places=4)
    quantity_before = models.DecimalField(max_digits=15, decimal_places=4)
    resulting_balance = models.DecimalField(max_digits=15, decimal_places=4)
    unit_cost = models.DecimalField(
        max_digits=15, decimal_places=4, null=True, blank=True
    )
    total_cost = models.DecimalField(
        max_digits=15, decimal_places=4, null=True, blank=True
    )

    reference_number = models.CharField(max_length=50, blank=True, default="", db_index=True)

    # Null performed_by means the system actor
    performed_by = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="stock_movements",
    )
    approved_by = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="approved_stock_movements",
    )
    is_system = models.BooleanField(default=False)
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["product", "created_at"], name="stock_mvmt_product_created_idx"),
            models.Index(fields=["movement_type", "created_at"], name="stock_mvmt_type_created_idx"),
        ]

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValueError("Stock movements are immutable once recorded")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Stock movements cannot be deleted")

    def __str__(self):
        return f"{self.product.name} | {self.get_movement_type_display()} {self.quantity_change:+}"


class StockSettings(models.Model):
    """
    Singleton settings table. Use StockSettings.load() to get the instance.
    """

    # Approval gate
    approval_threshold_percent = models.DecimalField(
        max_digits=6, decimal_places=2, default=10
    )
    allow_negative_stock = models.BooleanField(default=False)

    # Validation warnings
    large_adjustment_warning_percent = models.DecimalField(
        max_digits=6, decimal_places=2, default=50
    )

    # Package summaries
    package_low_stock_threshold = models.PositiveIntegerField(default=20)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "stock settings"
        verbose_name_plural = "stock settings"

    def save(self, *args, **kwargs):
        # Enforce singleton: always use pk=1
        self.pk = 1
        super().save(*args, **kwargs)

    @classmethod
    def load(cls):
        obj, _ = cls.objects.get_or_create(pk=1)
        return obj

    def __str__(self):
        return "Stock Settings"
