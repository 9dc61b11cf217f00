"""Store-wide settings that drive checkout: shipping, tax and payment methods.

The settings row is owned by the back office. Checkout only reads it through a
``SettingsProvider``, once per checkout, and never keeps the values longer.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from protean.exceptions import ObjectNotFoundError
from protean.fields import Boolean, Float, String
from protean.utils.globals import current_domain

from storefront.domain import logger, storefront
from storefront.shared.money import Money

SETTINGS_ID = "settings"
SETTINGS_CACHE_KEY = "app:settings"
SETTINGS_CACHE_TTL = 5 * 60


class PaymentMethod(Enum):
    COD = "COD"
    BANK_TRANSFER = "BANK_TRANSFER"
    CREDIT_CARD = "CREDIT_CARD"


@storefront.aggregate
class StoreSettings:
    id = String(identifier=True, default=SETTINGS_ID, max_length=20)
    store_name = String(max_length=255, default="Fashion Store")
    currency = String(max_length=3, default="VND")
    shipping_fee = Float(default=30000.0, min_value=0.0)
    free_shipping_threshold = Float(min_value=0.0)
    tax_rate = Float(default=10.0, min_value=0.0, max_value=100.0)
    payment_cod_enabled = Boolean(default=True)
    payment_bank_transfer_enabled = Boolean(default=True)
    payment_credit_card_enabled = Boolean(default=False)


@dataclass(frozen=True)
class SettingsSnapshot:
    """An immutable view of the settings for the duration of one checkout."""

    shipping_fee: Money
    tax_rate: Decimal
    free_shipping_threshold: Money | None = None
    payment_cod_enabled: bool = True
    payment_bank_transfer_enabled: bool = True
    payment_credit_card_enabled: bool = False
    currency: str = "VND"
    store_name: str = "Fashion Store"

    @classmethod
    def from_settings(cls, settings: StoreSettings) -> "SettingsSnapshot":
        threshold = settings.free_shipping_threshold
        return cls(
            shipping_fee=Money.from_stored(settings.shipping_fee),
            tax_rate=Money.from_stored(settings.tax_rate).amount,
            free_shipping_threshold=Money.from_stored(threshold) if threshold else None,
            payment_cod_enabled=settings.payment_cod_enabled,
            payment_bank_transfer_enabled=settings.payment_bank_transfer_enabled,
            payment_credit_card_enabled=settings.payment_credit_card_enabled,
            currency=settings.currency,
            store_name=settings.store_name,
        )

    @classmethod
    def from_dict(cls, data) -> "SettingsSnapshot":
        threshold = data.get("free_shipping_threshold")
        return cls(
            shipping_fee=Money.of(data["shipping_fee"]),
            tax_rate=Decimal(data["tax_rate"]),
            free_shipping_threshold=Money.of(threshold) if threshold is not None else None,
            payment_cod_enabled=data["payment_cod_enabled"],
            payment_bank_transfer_enabled=data["payment_bank_transfer_enabled"],
            payment_credit_card_enabled=data["payment_credit_card_enabled"],
            currency=data["currency"],
            store_name=data["store_name"],
        )

    def to_dict(self):
        return {
            "shipping_fee": str(self.shipping_fee),
            "tax_rate": str(self.tax_rate),
            "free_shipping_threshold": str(self.free_shipping_threshold) if self.free_shipping_threshold else None,
            "payment_cod_enabled": self.payment_cod_enabled,
            "payment_bank_transfer_enabled": self.payment_bank_transfer_enabled,
            "payment_credit_card_enabled": self.payment_credit_card_enabled,
            "currency": self.currency,
            "store_name": self.store_name,
        }

    def enabled_payment_methods(self):
        toggles = {
            PaymentMethod.COD: self.payment_cod_enabled,
            PaymentMethod.BANK_TRANSFER: self.payment_bank_transfer_enabled,
            PaymentMethod.CREDIT_CARD: self.payment_credit_card_enabled,
        }
        return [method for method, enabled in toggles.items() if enabled]

    def is_payment_enabled(self, method) -> bool:
        return PaymentMethod(method) in self.enabled_payment_methods()


class SettingsProvider(ABC):
    @abstractmethod
    def get_settings(self) -> SettingsSnapshot:
        """Current settings; called once per checkout."""


class StaticSettingsProvider(SettingsProvider):
    def __init__(self, snapshot: SettingsSnapshot):
        self.snapshot = snapshot

    def get_settings(self) -> SettingsSnapshot:
        return self.snapshot


class RepositorySettingsProvider(SettingsProvider):
    """Settings read from the ``StoreSettings`` row, cached for a few minutes.

    A missing row is created with defaults on first read.
    """

    def __init__(self, cache=None, ttl=SETTINGS_CACHE_TTL):
        self.cache = cache
        self.ttl = ttl

    def get_settings(self) -> SettingsSnapshot:
        if self.cache is not None:
            cached = self.cache.get(SETTINGS_CACHE_KEY)
            if cached:
                return SettingsSnapshot.from_dict(cached)

        snapshot = SettingsSnapshot.from_settings(self._load())
        if self.cache is not None:
            self.cache.set(SETTINGS_CACHE_KEY, snapshot.to_dict(), self.ttl)
        return snapshot

    def invalidate(self):
        if self.cache is not None:
            self.cache.delete(SETTINGS_CACHE_KEY)

    def _load(self) -> StoreSettings:
        repo = current_domain.repository_for(StoreSettings)
        try:
            return repo.get(SETTINGS_ID)
        except ObjectNotFoundError:
            logger.info("settings_created_with_defaults", settings_id=SETTINGS_ID)
            settings = StoreSettings(id=SETTINGS_ID)
            repo.add(settings)
            return settings
