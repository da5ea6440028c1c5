"""
Deal Desk Tax & Fee Persistence - App Configuration
====================================================
Rule catalog, deal units, committed deal fees and deal stamps.
"""

from django.apps import AppConfig


class TaxFeesPersistenceConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "engines.tax_fees.persistence"
    label = "tax_fees"
    verbose_name = "Deal Desk Tax & Fees"
