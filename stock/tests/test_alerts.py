from decimal import Decimal

from django.test import SimpleTestCase, TestCase

from stock.services import LowStockAlertService

from .helpers import make_product

D = Decimal


class RuleTests(SimpleTestCase):

    def test_stock_status(self):
        self.assertEqual(LowStockAlertService.stock_status(D("0"), D("10")), "out_of_stock")
        self.assertEqual(LowStockAlertService.stock_status(D("10"), D("10")), "low_stock")
        self.assertEqual(LowStockAlertService.stock_status(D("15"), D("10")), "warning")
        self.assertEqual(LowStockAlertService.stock_status(D("16"), D("10")), "adequate")

    def test_reorder_quantity(self):
        self.assertEqual(LowStockAlertService.reorder_quantity(D("11"), D("10"), D("24")), D("0"))
        self.assertEqual(LowStockAlertService.reorder_quantity(D("4"), D("10"), D("24")), D("24"))
        self.assertEqual(LowStockAlertService.reorder_quantity(D("4"), D("10"), None), D("16"))
        self.assertEqual(LowStockAlertService.reorder_quantity(D("4"), D("10"), D("0")), D("16"))

    def test_urgency_bands(self):
        rp = D("100")
        cases = [("0", 100), ("50", 90), ("75", 70), ("100", 50), ("125", 30), ("126", 10)]
        for stock, expected in cases:
            self.assertEqual(LowStockAlertService.urgency(D(stock), rp), expected, stock)


class LowStockAlertsTests(TestCase):

    def test_only_products_at_or_below_reorder_point(self):
        out = make_product(name="Out", stock="0", reorder_point="10")
        low = make_product(name="Low", stock="8", reorder_point="10", cost_price=D("2.00"))
        make_product(name="Fine", stock="50", reorder_point="10")
        make_product(name="Inactive", stock="0", reorder_point="10", is_active=False)

        alerts = LowStockAlertService.low_stock_alerts()

        self.assertEqual([a["product_id"] for a in alerts], [out.id, low.id])
        self.assertEqual(alerts[0]["urgency"], 100)
        self.assertEqual(alerts[1]["status"], "low_stock")
        self.assertEqual(alerts[1]["reorder_quantity"], "12")
        self.assertEqual(alerts[1]["estimated_cost"], "24")

    def test_critical_only_and_summary(self):
        make_product(stock="0", reorder_point="10")
        make_product(stock="9", reorder_point="10")

        self.assertEqual(len(LowStockAlertService.low_stock_alerts(critical_only=True)), 1)
        self.assertEqual(
            LowStockAlertService.summary(),
            {"total": 2, "critical": 1, "urgent": 1, "moderate": 0, "low": 0},
        )
