from django.db import migrations, models


def _amount():
    return models.DecimalField(decimal_places=10, max_digits=28)


KIND_CHOICES = [
    ("tax", "Tax"),
    ("temp_plate", "Temp plate"),
    ("transport", "Transport"),
    ("doc", "Doc"),
    ("discount", "Discount"),
    ("other", "Other"),
]
CALC_TYPE_CHOICES = [("percent", "Percent"), ("fixed", "Fixed")]


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="TaxRegime",
            fields=[
                ("regime_id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("jurisdiction", models.CharField(blank=True, default="", max_length=64)),
                ("active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "tax_regimes",
                "ordering": ["name", "regime_id"],
            },
        ),
        migrations.CreateModel(
            name="TaxRule",
            fields=[
                ("rule_id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("version", models.PositiveIntegerField()),
                ("effective_from", models.DateField()),
                ("effective_to", models.DateField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("locked", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "regime",
                    models.ForeignKey(
                        db_column="regime_id",
                        on_delete=models.deletion.PROTECT,
                        related_name="rules",
                        to="tax_fees.taxregime",
                    ),
                ),
            ],
            options={
                "db_table": "tax_rules",
                "ordering": ["regime_id", "version"],
                "indexes": [
                    models.Index(fields=["regime", "is_active"], name="idx_tax_rule_active"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("regime", "version"),
                        name="uq_tax_rule_regime_version",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="TaxRuleLine",
            fields=[
                ("line_id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("calc_type", models.CharField(choices=CALC_TYPE_CHOICES, max_length=16)),
                ("base", models.CharField(max_length=64)),
                ("rate_or_amount", _amount()),
                ("conditions", models.JSONField(blank=True, null=True)),
                ("sort", models.IntegerField(default=0)),
                ("kind", models.CharField(blank=True, choices=KIND_CHOICES, max_length=16, null=True)),
                (
                    "rule",
                    models.ForeignKey(
                        db_column="rule_id",
                        on_delete=models.deletion.PROTECT,
                        related_name="lines",
                        to="tax_fees.taxrule",
                    ),
                ),
            ],
            options={
                "db_table": "tax_rule_lines",
                "ordering": ["rule_id", "sort", "line_id"],
            },
        ),
        migrations.CreateModel(
            name="DealUnit",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("deal_id", models.CharField(max_length=64)),
                ("unit_id", models.CharField(max_length=64)),
                ("agreed_unit_price", _amount()),
            ],
            options={
                "db_table": "deal_units",
                "ordering": ["deal_id", "unit_id"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("deal_id", "unit_id"),
                        name="uq_deal_unit",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="DealFee",
            fields=[
                ("fee_id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("deal_id", models.CharField(max_length=64)),
                ("name", models.CharField(max_length=255)),
                ("calc_type", models.CharField(choices=CALC_TYPE_CHOICES, max_length=16)),
                ("base", models.CharField(max_length=64)),
                ("rate_or_amount", _amount()),
                ("result_amount", _amount()),
                ("applies", models.BooleanField(default=True)),
                ("meta", models.JSONField(blank=True, default=dict)),
                ("sort", models.IntegerField(default=0)),
                ("kind", models.CharField(blank=True, choices=KIND_CHOICES, max_length=16, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "rule",
                    models.ForeignKey(
                        blank=True,
                        db_column="rule_id",
                        null=True,
                        on_delete=models.deletion.PROTECT,
                        related_name="deal_fees",
                        to="tax_fees.taxrule",
                    ),
                ),
            ],
            options={
                "db_table": "deal_fees",
                "ordering": ["deal_id", "sort", "fee_id"],
                "indexes": [
                    models.Index(fields=["deal_id"], name="idx_deal_fee_deal"),
                ],
            },
        ),
        migrations.CreateModel(
            name="DealStamp",
            fields=[
                ("deal_id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("stamped_at", models.DateTimeField(auto_now=True)),
                (
                    "tax_rule_version",
                    models.ForeignKey(
                        db_column="tax_rule_version_id",
                        on_delete=models.deletion.PROTECT,
                        related_name="deal_stamps",
                        to="tax_fees.taxrule",
                    ),
                ),
            ],
            options={
                "db_table": "deal_stamps",
            },
        ),
    ]
