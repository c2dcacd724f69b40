"""
Stock valuation (weighted average unit cost) and replenishment thresholds.
"""

from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('stockledger', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='stock',
            name='unit_cost',
            field=models.DecimalField(blank=True, decimal_places=4, max_digits=18, null=True, verbose_name='Unit cost'),
        ),
        migrations.AddField(
            model_name='stock',
            name='minimum_stock',
            field=models.DecimalField(blank=True, decimal_places=4, max_digits=18, null=True, verbose_name='Minimum stock'),
        ),
        migrations.AddField(
            model_name='stock',
            name='maximum_stock',
            field=models.DecimalField(blank=True, decimal_places=4, max_digits=18, null=True, verbose_name='Maximum stock'),
        ),
        migrations.AddField(
            model_name='stock',
            name='reorder_point',
            field=models.DecimalField(blank=True, decimal_places=4, max_digits=18, null=True, verbose_name='Reorder point'),
        ),
        migrations.AddConstraint(
            model_name='stock',
            constraint=models.CheckConstraint(
                condition=models.Q(('unit_cost__isnull', True), ('unit_cost__gte', 0), _connector='OR'),
                name='stock_unit_cost_non_negative',
            ),
        ),
        migrations.AddConstraint(
            model_name='stock',
            constraint=models.CheckConstraint(
                condition=models.Q(
                    ('minimum_stock__isnull', True),
                    ('maximum_stock__isnull', True),
                    ('minimum_stock__lte', models.F('maximum_stock')),
                    _connector='OR',
                ),
                name='stock_minimum_below_maximum',
            ),
        ),
    ]
