"""
Deal Desk Tax & Fee Persistence - Relational Models
====================================================
Rows only. Versioning rules, matching and arithmetic live in the
engine; repository.py converts rows to engine records.
"""

from __future__ import annotations

from django.db import models


class CalcTypeChoice(models.TextChoices):
    PERCENT = "percent", "Percent"
    FIXED = "fixed", "Fixed"


class FeeKindChoice(models.TextChoices):
    TAX = "tax", "Tax"
    TEMP_PLATE = "temp_plate", "Temp plate"
    TRANSPORT = "transport", "Transport"
    DOC = "doc", "Doc"
    DISCOUNT = "discount", "Discount"
    OTHER = "other", "Other"


AMOUNT_MAX_DIGITS = 28
AMOUNT_DECIMAL_PLACES = 10


class TaxRegime(models.Model):
    regime_id = models.CharField(max_length=64, primary_key=True)
    name = models.CharField(max_length=255)
    jurisdiction = models.CharField(max_length=64, blank=True, default="")
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "tax_regimes"
        ordering = ["name", "regime_id"]

    def __str__(self) -> str:
        return f"{self.regime_id}:{self.name}"


class TaxRule(models.Model):
    rule_id = models.CharField(max_length=64, primary_key=True)
    regime = models.ForeignKey(
        TaxRegime,
        on_delete=models.PROTECT,
        related_name="rules",
        db_column="regime_id",
    )
    version = models.PositiveIntegerField()
    effective_from = models.DateField()
    effective_to = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    locked = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "tax_rules"
        ordering = ["regime_id", "version"]
        indexes = [
            models.Index(fields=["regime", "is_active"], name="idx_tax_rule_active"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["regime", "version"],
                name="uq_tax_rule_regime_version",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.regime_id}:v{self.version}"


class TaxRuleLine(models.Model):
    line_id = models.CharField(max_length=64, primary_key=True)
    rule = models.ForeignKey(
        TaxRule,
        on_delete=models.PROTECT,
        related_name="lines",
        db_column="rule_id",
    )
    name = models.CharField(max_length=255)
    calc_type = models.CharField(max_length=16, choices=CalcTypeChoice.choices)
    base = models.CharField(max_length=64)
    rate_or_amount = models.DecimalField(
        max_digits=AMOUNT_MAX_DIGITS, decimal_places=AMOUNT_DECIMAL_PLACES,
    )
    conditions = models.JSONField(null=True, blank=True)
    sort = models.IntegerField(default=0)
    kind = models.CharField(
        max_length=16, choices=FeeKindChoice.choices, null=True, blank=True,
    )

    class Meta:
        db_table = "tax_rule_lines"
        ordering = ["rule_id", "sort", "line_id"]

    def __str__(self) -> str:
        return f"{self.rule_id}:{self.name}"


class DealUnit(models.Model):
    deal_id = models.CharField(max_length=64)
    unit_id = models.CharField(max_length=64)
    agreed_unit_price = models.DecimalField(
        max_digits=AMOUNT_MAX_DIGITS, decimal_places=AMOUNT_DECIMAL_PLACES,
    )

    class Meta:
        db_table = "deal_units"
        ordering = ["deal_id", "unit_id"]
        constraints = [
            models.UniqueConstraint(
                fields=["deal_id", "unit_id"],
                name="uq_deal_unit",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.deal_id}:{self.unit_id}"


class DealFee(models.Model):
    fee_id = models.CharField(max_length=64, primary_key=True)
    deal_id = models.CharField(max_length=64)
    name = models.CharField(max_length=255)
    calc_type = models.CharField(max_length=16, choices=CalcTypeChoice.choices)
    base = models.CharField(max_length=64)
    rate_or_amount = models.DecimalField(
        max_digits=AMOUNT_MAX_DIGITS, decimal_places=AMOUNT_DECIMAL_PLACES,
    )
    result_amount = models.DecimalField(
        max_digits=AMOUNT_MAX_DIGITS, decimal_places=AMOUNT_DECIMAL_PLACES,
    )
    applies = models.BooleanField(default=True)
    meta = models.JSONField(default=dict, blank=True)
    sort = models.IntegerField(default=0)
    kind = models.CharField(
        max_length=16, choices=FeeKindChoice.choices, null=True, blank=True,
    )
    rule = models.ForeignKey(
        TaxRule,
        on_delete=models.PROTECT,
        related_name="deal_fees",
        db_column="rule_id",
        null=True,
        blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "deal_fees"
        ordering = ["deal_id", "sort", "fee_id"]
        indexes = [
            models.Index(fields=["deal_id"], name="idx_deal_fee_deal"),
        ]

    def __str__(self) -> str:
        return f"{self.deal_id}:{self.name}"


class DealStamp(models.Model):
    deal_id = models.CharField(max_length=64, primary_key=True)
    tax_rule_version = models.ForeignKey(
        TaxRule,
        on_delete=models.PROTECT,
        related_name="deal_stamps",
        db_column="tax_rule_version_id",
    )
    stamped_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "deal_stamps"

    def __str__(self) -> str:
        return f"{self.deal_id}:{self.tax_rule_version_id}"


class DealLock(models.Model):
    """One row per deal touched by a write; fee writes serialize on it."""

    deal_id = models.CharField(max_length=64, primary_key=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "deal_locks"

    def __str__(self) -> str:
        return self.deal_id
