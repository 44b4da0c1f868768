"""
Currency conversion for quotes.

Every amount is computed in the base currency (INR) and multiplied by the
target currency's rate. The rate table lives at `exchangeRates/rates`, is
admin-editable, and always carries the base currency at exactly 1.
"""
import logging
from decimal import Decimal
from typing import Dict, Mapping, Optional

from ricequote.exceptions import ValidationError
from ricequote.models.audit import ActorContext
from ricequote.services.audit_service import AuditedChange, AuditLogger
from ricequote.services.cache_service import CacheService
from ricequote.services.document_store import DocumentStore
from ricequote.utils.formatters import to_decimal

logger = logging.getLogger(__name__)

RATES_PATH = 'exchangeRates/rates'
BASE_CURRENCY = 'INR'

# 1 INR expressed in each currency
DEFAULT_RATES: Dict[str, Decimal] = {
    'INR': Decimal('1'),
    'USD': Decimal('1') / Decimal('87.98'),
    'EUR': Decimal('1') / Decimal('102.33'),
    'GBP': Decimal('1') / Decimal('117.64'),
}


class CurrencyConverter:
    """Pure mapping from base-currency amounts to a target currency."""

    def __init__(self, rates: Mapping[str, Decimal], base_currency: str = BASE_CURRENCY):
        self.base_currency = base_currency.upper()
        self.rates = {code.upper(): Decimal(rate) for code, rate in rates.items()}
        self.rates[self.base_currency] = Decimal('1')

    def rate(self, currency: str) -> Decimal:
        code = (currency or '').upper()
        try:
            return self.rates[code]
        except KeyError:
            raise ValidationError(
                f"Currency '{currency}' is not supported",
                errors={'currency': 'Choose one of ' + ', '.join(sorted(self.rates))},
            )

    def convert(self, amount: Decimal, currency: str) -> Decimal:
        return amount * self.rate(currency)

    def supports(self, currency: str) -> bool:
        return (currency or '').upper() in self.rates


def _normalize_rates(raw: Optional[Mapping], base_currency: str) -> Dict[str, Decimal]:
    rates = {}
    for code, value in (raw or {}).items():
        rate = to_decimal(value)
        if rate is None or rate <= 0:
            logger.warning(f"[RATES] Ignoring invalid rate {code}={value!r}")
            continue
        rates[code.upper()] = rate
    rates[base_currency] = Decimal('1')
    return rates


class ExchangeRateService:
    """Loads, caches and edits the exchange-rate table."""

    def __init__(self, store: DocumentStore, audit_logger: AuditLogger,
                 cache: Optional[CacheService] = None,
                 base_currency: str = BASE_CURRENCY, ttl: int = 300):
        self.store = store
        self.audit_logger = audit_logger
        self.cache = cache
        self.base_currency = base_currency.upper()
        self.ttl = ttl

    def _load(self) -> Dict[str, Decimal]:
        stored = self.store.get(RATES_PATH)
        if not stored:
            logger.info("[RATES] No stored table, using defaults")
            return dict(DEFAULT_RATES)
        return _normalize_rates(stored, self.base_currency)

    def get_rates(self) -> Dict[str, Decimal]:
        if self.cache is None:
            return self._load()
        return self.cache.read_through(RATES_PATH, self._load, ttl=self.ttl)

    def converter(self) -> CurrencyConverter:
        return CurrencyConverter(self.get_rates(), self.base_currency)

    def _write(self, rates: Dict[str, Decimal], actor_context: ActorContext) -> AuditedChange:
        change = self.audit_logger.write_with_history(RATES_PATH, 'EXCHANGE_RATES', rates, actor_context)
        if self.cache is not None:
            self.cache.invalidate(RATES_PATH)
        return change

    def set_rate(self, currency: str, rate, actor_context: ActorContext) -> AuditedChange:
        code = (currency or '').strip().upper()
        value = to_decimal(rate)
        if not code.isalpha() or len(code) != 3:
            raise ValidationError('Currency code must be three letters', errors={'currency': code})
        if value is None or value <= 0:
            raise ValidationError('Rate must be a positive number', errors={'rate': str(rate)})
        if code == self.base_currency and value != 1:
            raise ValidationError(f'{self.base_currency} is the base currency and stays at 1',
                                  errors={'currency': code})
        rates = self._load()
        rates[code] = value
        logger.info(f"[RATES] {code} set to {value}")
        return self._write(rates, actor_context)

    def delete_rate(self, currency: str, actor_context: ActorContext) -> AuditedChange:
        code = (currency or '').strip().upper()
        if code == self.base_currency:
            raise ValidationError(f'{self.base_currency} is the base currency and cannot be deleted',
                                  errors={'currency': code})
        rates = self._load()
        if code not in rates:
            raise ValidationError(f"Currency '{code}' is not in the table", errors={'currency': code})
        del rates[code]
        logger.info(f"[RATES] {code} removed")
        return self._write(rates, actor_context)

    def reset_defaults(self, actor_context: ActorContext) -> AuditedChange:
        logger.info("[RATES] Reset to defaults")
        return self._write(dict(DEFAULT_RATES), actor_context)
