import logging

from django.core.management.base import BaseCommand, CommandError

from main.models import Product
from stock.services import NotFoundError, StockLedgerService

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Replay stock movements and check every snapshot against product balances'

    def add_arguments(self, parser):
        parser.add_argument('--product', type=int, help='Only check this product id')

    def handle(self, *args, **options):
        if options['product']:
            product_ids = [options['product']]
        else:
            product_ids = list(Product.objects.order_by('id').values_list('id', flat=True))

        broken = 0
        for product_id in product_ids:
            try:
                report = StockLedgerService.verify_ledger(product_id)
            except NotFoundError as e:
                raise CommandError(str(e))

            if report['is_consistent']:
                self.stdout.write(
                    f"OK   {report['product_name']}: {report['movement_count']} movement(s), "
                    f"balance {report['current_stock']}"
                )
                continue

            broken += 1
            self.stdout.write(self.style.ERROR(
                f"FAIL {report['product_name']}: stock {report['current_stock']}, "
                f"replayed {report['replayed_balance']}"
            ))
            for mismatch in report['mismatches']:
                self.stdout.write(
                    f"     movement {mismatch['movement_id']} {mismatch['field']}: "
                    f"expected {mismatch['expected']}, recorded {mismatch['recorded']}"
                )

        if broken:
            logger.warning("Ledger check found %d inconsistent product(s)", broken)
            raise CommandError(f"{broken} product(s) have an inconsistent ledger")

        self.stdout.write(self.style.SUCCESS(f"Checked {len(product_ids)} product(s), ledger consistent"))
