"""
Deal Desk Core Config — Public API
===================================
Engine-wide fee settings (tax keywords, money rounding).
"""

from core.config.fee_engine import (
    DEFAULT_SETTINGS,
    FeeEngineSettings,
)

__all__ = [
    "DEFAULT_SETTINGS",
    "FeeEngineSettings",
]
