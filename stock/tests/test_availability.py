from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase, override_settings

from main.models import Package, Product
from stock.models import StockSettings
from stock.services import AvailabilityCalculator, NotFoundError

from .helpers import make_package, make_product


class AvailabilityTestCase(TestCase):

    def setUp(self):
        cache.clear()

    def set_stock(self, product, value):
        Product.objects.filter(id=product.id).update(current_stock=Decimal(value))


class CalculateTests(AvailabilityTestCase):

    def test_floor_of_stock_over_requirement(self):
        product = make_product(stock="7")
        package = make_package(components=[(product, 2)])
        self.assertEqual(AvailabilityCalculator.calculate(package.id).max_sellable, 3)

        self.set_stock(product, "9")
        self.assertEqual(AvailabilityCalculator.calculate(package.id, force_refresh=True).max_sellable, 4)

        self.set_stock(product, "1")
        self.assertEqual(AvailabilityCalculator.calculate(package.id, force_refresh=True).max_sellable, 0)

    def test_negative_stock_clamps_to_zero(self):
        product = make_product(stock="-4")
        package = make_package(components=[(product, 1)])
        result = AvailabilityCalculator.calculate(package.id)
        self.assertEqual(result.max_sellable, 0)
        self.assertEqual(result.components[0].max_packages, 0)

    def test_fractional_requirements(self):
        whisky = make_product(stock="2.25")
        package = make_package(components=[(whisky, "0.75")])
        self.assertEqual(AvailabilityCalculator.calculate(package.id).max_sellable, 3)

    def test_bottleneck_is_component_with_smallest_headroom(self):
        a = make_product(name="A", stock="10")
        b = make_product(name="B", stock="3")
        package = make_package(components=[(a, 2), (b, 1)])

        result = AvailabilityCalculator.calculate(package.id)

        self.assertEqual(result.max_sellable, 3)
        self.assertEqual(result.bottleneck.product_id, b.id)
        self.assertEqual([c.max_packages for c in result.components], [5, 3])

    def test_ties_go_to_first_component(self):
        a = make_product(stock="4")
        b = make_product(stock="2")
        package = make_package(components=[(a, 2), (b, 1)])

        result = AvailabilityCalculator.calculate(package.id)
        self.assertEqual(result.max_sellable, 2)
        self.assertEqual(result.bottleneck.product_id, a.id)

    def test_package_without_components_is_unbounded(self):
        package = make_package()
        result = AvailabilityCalculator.calculate(package.id)

        self.assertIsNone(result.max_sellable)
        self.assertTrue(result.is_unbounded)
        self.assertIsNone(result.bottleneck)
        self.assertEqual(result.components, ())

    def test_repeated_calls_are_identical(self):
        a = make_product(stock="10")
        b = make_product(stock="3")
        package = make_package(components=[(a, 2), (b, 1)])

        first = AvailabilityCalculator.calculate(package.id)
        second = AvailabilityCalculator.calculate(package.id)
        fresh = AvailabilityCalculator.calculate(package.id, force_refresh=True)

        self.assertEqual(first, second)
        self.assertEqual(first, fresh)

    def test_unknown_package(self):
        with self.assertRaises(NotFoundError):
            AvailabilityCalculator.calculate(999999)

    def test_to_dict(self):
        product = make_product(name="San Mig Light", stock="24")
        package = make_package(name="Beer Bucket", components=[(product, 6)])
        data = AvailabilityCalculator.calculate(package.id).to_dict()

        self.assertEqual(data["package_name"], "Beer Bucket")
        self.assertEqual(data["max_sellable"], 4)
        self.assertFalse(data["is_unbounded"])
        self.assertEqual(data["bottleneck_product"]["product_name"], "San Mig Light")
        self.assertEqual(data["component_availability"][0]["required_per_package"], "6")


class CacheTests(AvailabilityTestCase):

    def test_result_is_served_from_cache_until_refreshed(self):
        product = make_product(stock="10")
        package = make_package(components=[(product, 1)])
        self.assertEqual(AvailabilityCalculator.calculate(package.id).max_sellable, 10)

        self.set_stock(product, "2")
        with self.assertNumQueries(0):
            self.assertEqual(AvailabilityCalculator.calculate(package.id).max_sellable, 10)
        self.assertEqual(AvailabilityCalculator.calculate(package.id, force_refresh=True).max_sellable, 2)

    def test_invalidate_for_product(self):
        product = make_product(stock="10")
        first = make_package(components=[(product, 1)])
        second = make_package(components=[(product, 5)])
        AvailabilityCalculator.calculate_many([first.id, second.id])

        self.set_stock(product, "5")
        dropped = AvailabilityCalculator.invalidate_for_product(product.id)

        self.assertEqual(sorted(dropped), sorted([first.id, second.id]))
        results = AvailabilityCalculator.calculate_many([first.id, second.id])
        self.assertEqual(results[first.id].max_sellable, 5)
        self.assertEqual(results[second.id].max_sellable, 1)

    @override_settings(STOCK_AVAILABILITY_CACHE_TTL=0)
    def test_zero_ttl_disables_caching(self):
        product = make_product(stock="10")
        package = make_package(components=[(product, 1)])
        AvailabilityCalculator.calculate(package.id)

        self.set_stock(product, "4")
        self.assertEqual(AvailabilityCalculator.calculate(package.id).max_sellable, 4)


class CalculateManyTests(AvailabilityTestCase):

    def test_matches_single_calculation(self):
        shared = make_product(stock="12")
        other = make_product(stock="5")
        p1 = make_package(components=[(shared, 2), (other, 1)])
        p2 = make_package(components=[(shared, 4)])
        p3 = make_package()

        results = AvailabilityCalculator.calculate_many([p1.id, p2.id, p3.id])
        cache.clear()

        self.assertEqual(list(results), [p1.id, p2.id, p3.id])
        for pid in (p1.id, p2.id, p3.id):
            self.assertEqual(results[pid], AvailabilityCalculator.calculate(pid))

    def test_one_read_for_all_products(self):
        shared = make_product(stock="12")
        other = make_product(stock="5")
        packages = [
            make_package(components=[(shared, 2), (other, 1)]),
            make_package(components=[(shared, 4)]),
            make_package(components=[(other, 1), (shared, 1)]),
        ]

        # packages, component edges, product balances
        with self.assertNumQueries(3):
            AvailabilityCalculator.calculate_many([p.id for p in packages])

    def test_unknown_package(self):
        package = make_package()
        with self.assertRaises(NotFoundError):
            AvailabilityCalculator.calculate_many([package.id, 999999])


class SummaryTests(AvailabilityTestCase):

    def test_statuses(self):
        plenty = make_product(stock="100")
        few = make_product(stock="5")
        none = make_product(stock="0")
        make_package(name="A Available", components=[(plenty, 1)])
        make_package(name="B Low", components=[(few, 1)])
        make_package(name="C Out", components=[(none, 1)])
        make_package(name="D Free")
        make_package(name="E Retired", components=[(plenty, 1)], is_active=False)

        summaries = AvailabilityCalculator.summaries()

        self.assertEqual(
            [(s["package_name"], s["status"]) for s in summaries],
            [("A Available", "available"), ("B Low", "low_stock"), ("C Out", "out_of_stock"), ("D Free", "unbounded")],
        )
        self.assertEqual(summaries[1]["bottleneck"]["current_stock"], "5")

    def test_threshold_from_settings(self):
        settings = StockSettings.load()
        settings.package_low_stock_threshold = 200
        settings.save()
        plenty = make_product(stock="100")
        make_package(components=[(plenty, 1)])

        self.assertEqual(AvailabilityCalculator.summaries()[0]["status"], "low_stock")

    def test_filters(self):
        product = make_product(stock="100")
        make_package(name="VIP", components=[(product, 1)], package_type=Package.PackageType.VIP_ONLY)
        make_package(name="Promo", components=[(product, 1)], package_type=Package.PackageType.PROMOTIONAL)
        make_package(name="Old", components=[(product, 1)], is_active=False)

        vip = AvailabilityCalculator.summaries(package_type="vip_only")
        self.assertEqual([s["package_name"] for s in vip], ["VIP"])
        self.assertEqual(len(AvailabilityCalculator.summaries(include_inactive=True)), 3)

    def test_status_for(self):
        self.assertEqual(AvailabilityCalculator.status_for(None, 20), "unbounded")
        self.assertEqual(AvailabilityCalculator.status_for(0, 20), "out_of_stock")
        self.assertEqual(AvailabilityCalculator.status_for(20, 20), "low_stock")
        self.assertEqual(AvailabilityCalculator.status_for(21, 20), "available")
