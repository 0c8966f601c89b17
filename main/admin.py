from django.contrib import admin
from django.utils.translation import gettext_lazy as _
from unfold.admin import ModelAdmin, TabularInline
from unfold.decorators import display
from unfold.contrib.filters.admin import RangeNumericFilter

from .models import User, Product, Package, PackageComponent


class PackageComponentInline(TabularInline):
    model = PackageComponent
    extra = 0
    fields = ('product', 'quantity', 'display_order')
    autocomplete_fields = ('product',)


@admin.register(User)
class UserAdmin(ModelAdmin):
    list_display = ('full_name', 'email', 'role', 'status', 'created_at')
    list_filter = ('role', 'status')
    search_fields = ('first_name', 'last_name', 'email')


@admin.register(Product)
class ProductAdmin(ModelAdmin):
    list_display = ('name', 'sku', 'stock_display', 'reorder_point', 'unit_of_measure', 'is_active')
    list_filter = ('is_active', ('current_stock', RangeNumericFilter))
    list_filter_submit = True
    search_fields = ('name', 'sku')
    # Stock only moves through the ledger
    readonly_fields = ('current_stock', 'uuid', 'created_at', 'updated_at')

    @display(description=_("Stock"), ordering='current_stock')
    def stock_display(self, obj):
        return f"{obj.current_stock.normalize()} {obj.unit_of_measure}"


@admin.register(Package)
class PackageAdmin(ModelAdmin):
    list_display = ('name', 'package_code', 'package_type', 'base_price', 'component_count', 'is_active')
    list_filter = ('package_type', 'is_active')
    search_fields = ('name', 'package_code')
    inlines = [PackageComponentInline]

    @display(description=_("Components"))
    def component_count(self, obj):
        return obj.components.count()
