from django.urls import path
from . import views

app_name = "stock"

urlpatterns = [
    path("settings/", views.StockSettingsView.as_view(), name="settings"),

    path("adjust/", views.StockAdjustView.as_view(), name="adjust"),
    path("validate/", views.StockValidateView.as_view(), name="validate"),
    path("movements/", views.MovementListView.as_view(), name="movement-list"),

    path("products/<int:product_id>/balance/", views.ProductBalanceView.as_view(), name="product-balance"),
    path("products/<int:product_id>/package-impact/", views.ProductPackageImpactView.as_view(), name="product-impact"),
    path("products/<int:product_id>/verify-ledger/", views.LedgerVerifyView.as_view(), name="product-verify-ledger"),

    path("packages/availability/", views.PackageAvailabilityListView.as_view(), name="package-availability-list"),
    path("packages/<int:package_id>/availability/", views.PackageAvailabilityView.as_view(), name="package-availability"),
    path("packages/<int:package_id>/components/", views.PackageComponentsView.as_view(), name="package-components"),
    path("packages/<int:package_id>/components/<int:product_id>/", views.PackageComponentDetailView.as_view(), name="package-component-detail"),

    path("low-stock/", views.LowStockView.as_view(), name="low-stock"),
    path("bottlenecks/", views.BottleneckView.as_view(), name="bottlenecks"),

    path("orders/check/", views.OrderCheckView.as_view(), name="order-check"),
    path("orders/deduct/", views.OrderDeductView.as_view(), name="order-deduct"),
    path("orders/void/", views.OrderVoidView.as_view(), name="order-void"),
]
