from decimal import Decimal
from typing import Dict, Any

from django.db import transaction

from stock.models import StockSettings
from stock.services.base_service import (
    BaseService, success_response, ValidationError, decimal_str, to_decimal
)


class StockSettingsService(BaseService):
    model = StockSettings

    @classmethod
    def load(cls) -> StockSettings:
        return StockSettings.load()

    @classmethod
    def get_all(cls) -> Dict[str, Any]:
        settings = cls.load()

        return {
            "approval_threshold_percent": decimal_str(Decimal(settings.approval_threshold_percent)),
            "allow_negative_stock": settings.allow_negative_stock,
            "large_adjustment_warning_percent": decimal_str(Decimal(settings.large_adjustment_warning_percent)),
            "package_low_stock_threshold": settings.package_low_stock_threshold,
        }

    @classmethod
    @transaction.atomic
    def update(cls, **kwargs) -> Dict[str, Any]:
        settings = cls.load()

        for field in ("approval_threshold_percent", "large_adjustment_warning_percent"):
            if field in kwargs:
                value = to_decimal(kwargs[field], default=None)
                if value is None or not value.is_finite() or value <= 0 or value > 1000:
                    raise ValidationError("Percentage must be greater than 0 and at most 1000", field)
                kwargs[field] = value

        if "package_low_stock_threshold" in kwargs:
            value = kwargs["package_low_stock_threshold"]
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValidationError("Threshold must be a non-negative integer", "package_low_stock_threshold")

        if "allow_negative_stock" in kwargs and not isinstance(kwargs["allow_negative_stock"], bool):
            raise ValidationError("allow_negative_stock must be true or false", "allow_negative_stock")

        valid_fields = {
            "approval_threshold_percent", "allow_negative_stock",
            "large_adjustment_warning_percent", "package_low_stock_threshold",
        }

        updated = []
        for field, value in kwargs.items():
            if field in valid_fields:
                setattr(settings, field, value)
                updated.append(field)

        if updated:
            settings.save()

        return success_response({
            "updated_fields": updated,
            "settings": cls.get_all()
        }, f"Updated {len(updated)} setting(s)")
