from django.contrib import admin
from django.utils.translation import gettext_lazy as _
from unfold.admin import ModelAdmin
from unfold.decorators import display
from unfold.contrib.filters.admin import RangeDateTimeFilter

from .models import StockMovement, StockSettings


@admin.register(StockMovement)
class StockMovementAdmin(ModelAdmin):
    list_display = (
        'created_at', 'product', 'movement_type', 'change_display',
        'resulting_balance', 'reason', 'actor_display', 'reference_number',
    )
    list_filter = ('movement_type', 'is_system', ('created_at', RangeDateTimeFilter))
    list_filter_submit = True
    search_fields = ('product__name', 'reference_number', 'reason')
    list_select_related = ('product', 'performed_by')
    date_hierarchy = 'created_at'

    # Ledger rows are written by StockLedgerService only
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    @display(description=_("Change"), ordering='quantity_change')
    def change_display(self, obj):
        return f"{obj.quantity_change.normalize():+}"

    @display(description=_("By"))
    def actor_display(self, obj):
        if obj.performed_by_id:
            return obj.performed_by.full_name
        return _("System")


@admin.register(StockSettings)
class StockSettingsAdmin(ModelAdmin):
    list_display = (
        '__str__', 'approval_threshold_percent', 'allow_negative_stock',
        'large_adjustment_warning_percent', 'package_low_stock_threshold',
    )

    def has_add_permission(self, request):
        return not StockSettings.objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False
