from decimal import Decimal
from io import StringIO
from unittest import mock

from django.core.cache import cache
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import OperationalError
from django.test import TestCase

from main.models import Product, User
from stock.models import StockMovement, StockSettings
from stock.services import (
    SYSTEM_ACTOR, ApprovalRequiredError, AvailabilityCalculator, ConcurrencyConflictError,
    InvalidMovementError, NotFoundError, StockLedgerService, ValidationError, actor_for_user,
    resolve_actor,
)

from .helpers import make_package, make_product, make_user


class LedgerTestCase(TestCase):

    def setUp(self):
        cache.clear()
        self.manager = actor_for_user(make_user(User.RoleChoices.MANAGER))
        self.cashier = actor_for_user(make_user(User.RoleChoices.CASHIER))


class ApplyTests(LedgerTestCase):

    def test_balance_equals_initial_plus_sum_of_changes(self):
        product = make_product(stock="100")
        changes = [
            ("20", "stock_in"),
            ("-5", "stock_out"),
            ("-3", "sale"),
            ("2", "void_return"),
            ("-14", "physical_count"),
            ("0.5", "stock_in"),
        ]

        running = Decimal("100")
        for change, movement_type in changes:
            movement = StockLedgerService.apply(product.id, change, movement_type, "test", actor=self.manager)
            running += Decimal(change)
            self.assertEqual(movement.resulting_balance, running)

        product.refresh_from_db()
        self.assertEqual(product.current_stock, Decimal("100.5"))
        self.assertEqual(StockMovement.objects.filter(product=product).count(), len(changes))

        snapshots = [m.resulting_balance for m in StockMovement.objects.filter(product=product).order_by("id")]
        self.assertEqual(snapshots, [Decimal(x) for x in ("120", "115", "112", "114", "100", "100.5")])

    def test_stock_in_with_negative_change_writes_nothing(self):
        product = make_product(stock="10")
        with self.assertRaises(InvalidMovementError) as ctx:
            StockLedgerService.apply(product.id, "-5", "stock_in", "delivery", actor=self.manager)

        self.assertEqual(str(ctx.exception), "Stock In movement must have positive quantity change")
        product.refresh_from_db()
        self.assertEqual(product.current_stock, Decimal("10"))
        self.assertFalse(StockMovement.objects.exists())

    def test_negative_result_rejected_with_deficit(self):
        product = make_product(stock="10")
        with self.assertRaises(InvalidMovementError) as ctx:
            StockLedgerService.apply(product.id, "-15", "stock_out", "damaged", actor=self.manager)

        self.assertEqual(str(ctx.exception), "Adjustment would result in negative stock (-5)")
        self.assertEqual(ctx.exception.details["deficit"], "5")
        self.assertEqual(ctx.exception.details["current_stock"], "10")
        self.assertFalse(StockMovement.objects.exists())

    def test_override_to_negative_still_needs_a_manager(self):
        product = make_product(stock="2")
        with self.assertRaises(ApprovalRequiredError):
            StockLedgerService.apply(product.id, "-5", "sale", "rush", actor=self.cashier, allow_negative=True)

        movement = StockLedgerService.apply(product.id, "-5", "sale", "rush", actor=self.manager, allow_negative=True)
        self.assertEqual(movement.resulting_balance, Decimal("-3"))
        self.assertEqual(movement.approved_by_id, self.manager.user_id)

    def test_negative_stock_setting_acts_as_override(self):
        settings = StockSettings.load()
        settings.allow_negative_stock = True
        settings.save()
        product = make_product(stock="1")

        movement = StockLedgerService.apply(product.id, "-2", "sale", "busy night", actor=self.manager)
        self.assertEqual(movement.resulting_balance, Decimal("-1"))

    def test_unknown_product(self):
        with self.assertRaises(NotFoundError):
            StockLedgerService.apply(999999, "1", "stock_in", "delivery")

    def test_non_finite_change(self):
        product = make_product(stock="1")
        with self.assertRaises(InvalidMovementError) as ctx:
            StockLedgerService.apply(product.id, "inf", "stock_in", "delivery")
        self.assertEqual(str(ctx.exception), "Quantity change must be a finite number")

    def test_unknown_movement_type(self):
        product = make_product(stock="1")
        with self.assertRaises(InvalidMovementError):
            StockLedgerService.apply(product.id, "1", "transfer", "move")

    def test_change_finer_than_the_column_writes_nothing(self):
        product = make_product(stock="10")
        with self.assertRaises(InvalidMovementError):
            StockLedgerService.apply(product.id, "0.00004", "stock_in", "delivery")

        product.refresh_from_db()
        self.assertEqual(product.current_stock, Decimal("10"))
        self.assertFalse(StockMovement.objects.exists())

    def test_returned_balance_matches_stored_balance(self):
        product = make_product(stock="10")
        movement = StockLedgerService.apply(product.id, "0.0004", "stock_in", "delivery")

        product.refresh_from_db()
        self.assertEqual(movement.resulting_balance, Decimal("10.0004"))
        self.assertEqual(movement.resulting_balance, product.current_stock)

    def test_unit_cost_must_fit_the_cost_column(self):
        product = make_product(stock="10")
        for unit_cost in ("0.00001", "100000000000"):
            with self.assertRaises(ValidationError):
                StockLedgerService.apply(product.id, "1", "stock_in", "delivery", unit_cost=unit_cost)
        self.assertFalse(StockMovement.objects.exists())

    def test_records_actor_cost_and_reference(self):
        product = make_product(stock="0")
        movement = StockLedgerService.apply(
            product.id, "4", "stock_in", "purchase",
            actor=self.cashier, unit_cost="2.50", notes="weekly delivery", reference_number="PO-1",
        )
        movement.refresh_from_db()
        self.assertEqual(movement.performed_by_id, self.cashier.user_id)
        self.assertFalse(movement.is_system)
        self.assertIsNone(movement.approved_by_id)
        self.assertEqual(movement.unit_cost, Decimal("2.5"))
        self.assertEqual(movement.total_cost, Decimal("10"))
        self.assertEqual(movement.quantity_before, Decimal("0"))
        self.assertEqual(movement.reference_number, "PO-1")
        self.assertEqual(movement.notes, "weekly delivery")

    def test_system_actor_has_no_user(self):
        product = make_product(stock="0")
        movement = StockLedgerService.apply(product.id, "3", "stock_in", "import")
        self.assertTrue(movement.is_system)
        self.assertIsNone(movement.performed_by_id)

    def test_lock_failure_becomes_concurrency_conflict(self):
        product = make_product(stock="10")
        with mock.patch.object(Product.objects, "select_for_update",
                               side_effect=OperationalError("database is locked")):
            with self.assertRaises(ConcurrencyConflictError) as ctx:
                StockLedgerService.apply(product.id, "1", "stock_in", "delivery", actor=self.manager)
        self.assertEqual(ctx.exception.code, "CONCURRENCY_CONFLICT")
        self.assertFalse(StockMovement.objects.exists())

    def test_apply_drops_cached_package_availability(self):
        product = make_product(stock="7")
        package = make_package(components=[(product, 2)])
        self.assertEqual(AvailabilityCalculator.calculate(package.id).max_sellable, 3)

        StockLedgerService.apply(product.id, "2", "stock_in", "delivery", actor=self.manager)

        self.assertEqual(AvailabilityCalculator.calculate(package.id).max_sellable, 4)


class ApprovalThroughLedgerTests(LedgerTestCase):

    def test_large_stock_out_needs_approval_from_cashier(self):
        product = make_product(stock="100")
        with self.assertRaises(ApprovalRequiredError) as ctx:
            StockLedgerService.apply(product.id, "-20", "stock_out", "spillage", actor=self.cashier)

        self.assertEqual(ctx.exception.details["current_stock"], "100")
        product.refresh_from_db()
        self.assertEqual(product.current_stock, Decimal("100"))
        self.assertFalse(StockMovement.objects.exists())

    def test_identical_call_succeeds_for_manager(self):
        product = make_product(stock="100")
        movement = StockLedgerService.apply(product.id, "-20", "stock_out", "spillage", actor=self.manager)
        self.assertEqual(movement.resulting_balance, Decimal("80"))
        self.assertEqual(movement.approved_by_id, self.manager.user_id)

    def test_identical_call_succeeds_with_approval_flag(self):
        product = make_product(stock="100")
        movement = StockLedgerService.apply(
            product.id, "-20", "stock_out", "spillage", actor=self.cashier, manager_approved=True
        )
        self.assertEqual(movement.resulting_balance, Decimal("80"))
        self.assertIsNone(movement.approved_by_id)

    def test_threshold_comes_from_settings(self):
        settings = StockSettings.load()
        settings.approval_threshold_percent = Decimal("50")
        settings.save()
        product = make_product(stock="100")

        movement = StockLedgerService.apply(product.id, "-20", "stock_out", "spillage", actor=self.cashier)
        self.assertEqual(movement.resulting_balance, Decimal("80"))

    def test_sales_are_not_held_for_size(self):
        product = make_product(stock="100")
        movement = StockLedgerService.apply(product.id, "-60", "sale", "order", actor=self.cashier)
        self.assertEqual(movement.resulting_balance, Decimal("40"))


class ReadTests(LedgerTestCase):

    def test_get_balance(self):
        product = make_product(stock="12.25")
        self.assertEqual(StockLedgerService.get_balance(product.id), Decimal("12.25"))
        with self.assertRaises(NotFoundError):
            StockLedgerService.get_balance(999999)

    def test_list_movements_newest_first_and_paginated(self):
        product = make_product(stock="0")
        other = make_product(stock="0")
        for qty in ("1", "2", "3"):
            StockLedgerService.apply(product.id, qty, "stock_in", "delivery", actor=self.manager)
        StockLedgerService.apply(other.id, "9", "stock_in", "delivery", actor=self.manager)

        movements, pagination = StockLedgerService.list_movements(product_id=product.id, per_page=2)
        self.assertEqual([m.quantity_change for m in movements], [Decimal("3"), Decimal("2")])
        self.assertEqual(pagination["total_items"], 3)
        self.assertTrue(pagination["has_next"])

        movements, pagination = StockLedgerService.list_movements(product_id=product.id, page=2, per_page=2)
        self.assertEqual([m.quantity_change for m in movements], [Decimal("1")])
        self.assertFalse(pagination["has_next"])

    def test_list_movements_by_type(self):
        product = make_product(stock="10")
        StockLedgerService.apply(product.id, "1", "stock_in", "delivery", actor=self.manager)
        StockLedgerService.apply(product.id, "-1", "sale", "order", actor=self.manager)

        movements, _ = StockLedgerService.list_movements(movement_type="sale")
        self.assertEqual([m.movement_type for m in movements], ["sale"])

    def test_serialize(self):
        product = make_product(name="Red Horse", stock="0")
        movement = StockLedgerService.apply(product.id, "24", "stock_in", "purchase", actor=self.manager)
        data = StockLedgerService.serialize(movement)
        self.assertEqual(data["product_name"], "Red Horse")
        self.assertEqual(data["quantity_change"], "24")
        self.assertEqual(data["resulting_balance"], "24")
        self.assertEqual(data["performed_by"]["id"], self.manager.user_id)
        self.assertEqual(data["movement_type_display"], "Stock In")


class ImmutabilityTests(LedgerTestCase):

    def test_movement_cannot_be_changed_or_deleted(self):
        product = make_product(stock="0")
        movement = StockLedgerService.apply(product.id, "5", "stock_in", "delivery", actor=self.manager)

        movement.reason = "edited"
        with self.assertRaises(ValueError):
            movement.save()
        with self.assertRaises(ValueError):
            movement.delete()
        self.assertEqual(StockMovement.objects.get(id=movement.id).reason, "delivery")


class VerifyLedgerTests(LedgerTestCase):

    def test_consistent_ledger(self):
        product = make_product(stock="10")
        StockLedgerService.apply(product.id, "5", "stock_in", "delivery", actor=self.manager)
        StockLedgerService.apply(product.id, "-3", "sale", "order", actor=self.manager)

        report = StockLedgerService.verify_ledger(product.id)
        self.assertTrue(report["is_consistent"])
        self.assertEqual(report["movement_count"], 2)
        self.assertEqual(report["replayed_balance"], "12")

    def test_detects_balance_written_outside_the_ledger(self):
        product = make_product(stock="10")
        StockLedgerService.apply(product.id, "5", "stock_in", "delivery", actor=self.manager)
        Product.objects.filter(id=product.id).update(current_stock=Decimal("99"))

        report = StockLedgerService.verify_ledger(product.id)
        self.assertFalse(report["balance_matches"])
        self.assertFalse(report["is_consistent"])

    def test_management_command(self):
        product = make_product(stock="10")
        StockLedgerService.apply(product.id, "5", "stock_in", "delivery", actor=self.manager)
        call_command("verify_ledger", product=product.id, stdout=StringIO())

        Product.objects.filter(id=product.id).update(current_stock=Decimal("1"))
        with self.assertRaises(CommandError):
            call_command("verify_ledger", stdout=StringIO())


class ActorResolutionTests(TestCase):

    def test_roles_map_to_levels(self):
        from stock.services import AuthorizationLevel
        self.assertEqual(actor_for_user(make_user(User.RoleChoices.ADMIN)).level, AuthorizationLevel.ADMIN)
        self.assertEqual(actor_for_user(make_user(User.RoleChoices.MANAGER)).level, AuthorizationLevel.MANAGER)
        self.assertEqual(actor_for_user(make_user(User.RoleChoices.BARTENDER)).level, AuthorizationLevel.STAFF)

    def test_resolve_actor(self):
        user = make_user(User.RoleChoices.WAITER)
        self.assertEqual(resolve_actor(user.id).user_id, user.id)
        self.assertIs(resolve_actor(None), SYSTEM_ACTOR)

    def test_suspended_or_unknown_user(self):
        user = make_user(status=User.UserStatus.SUSPENDED)
        with self.assertRaises(NotFoundError):
            resolve_actor(user.id)
        with self.assertRaises(NotFoundError):
            resolve_actor(999999)
