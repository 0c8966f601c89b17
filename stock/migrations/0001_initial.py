import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('main', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='StockSettings',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('approval_threshold_percent', models.DecimalField(decimal_places=2, default=10, max_digits=6)),
                ('allow_negative_stock', models.BooleanField(default=False)),
                ('large_adjustment_warning_percent', models.DecimalField(decimal_places=2, default=50, max_digits=6)),
                ('package_low_stock_threshold', models.PositiveIntegerField(default=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'stock settings',
                'verbose_name_plural': 'stock settings',
            },
        ),
        migrations.CreateModel(
            name='StockMovement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('uuid', models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ('movement_type', models.CharField(choices=[('stock_in', 'Stock In'), ('stock_out', 'Stock Out'), ('physical_count', 'Physical Count'), ('sale', 'Sale'), ('void_return', 'Void Return')], db_index=True, max_length=20)),
                ('reason', models.CharField(blank=True, default='', max_length=255)),
                ('quantity_change', models.DecimalField(decimal_places=4, max_digits=15)),
                ('quantity_before', models.DecimalField(decimal_places=4, max_digits=15)),
                ('resulting_balance', models.DecimalField(decimal_places=4, max_digits=15)),
                ('unit_cost', models.DecimalField(blank=True, decimal_places=4, max_digits=15, null=True)),
                ('total_cost', models.DecimalField(blank=True, decimal_places=4, max_digits=15, null=True)),
                ('reference_number', models.CharField(blank=True, db_index=True, default='', max_length=50)),
                ('is_system', models.BooleanField(default=False)),
                ('notes', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('approved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='approved_stock_movements', to='main.user')),
                ('performed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='stock_movements', to='main.user')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='stock_movements', to='main.product')),
            ],
            options={
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['product', 'created_at'], name='stock_mvmt_product_created_idx'),
                    models.Index(fields=['movement_type', 'created_at'], name='stock_mvmt_type_created_idx'),
                ],
            },
        ),
    ]
