"""
Unit tests for the read-through document cache and its use by the rate table.
"""

from decimal import Decimal

from redis.exceptions import ConnectionError as RedisConnectionError

from ricequote.services.audit_service import AuditLogger
from ricequote.services.cache_service import CacheService
from ricequote.services.currency_service import RATES_PATH, ExchangeRateService


class FakeRedis:
    """Just enough of the redis client surface for the cache."""

    def __init__(self):
        self.data = {}
        self.down = False

    def _check(self):
        if self.down:
            raise RedisConnectionError('redis is down')

    def get(self, key):
        self._check()
        return self.data.get(key)

    def setex(self, key, ttl, value):
        self._check()
        self.data[key] = value

    def delete(self, key):
        self._check()
        self.data.pop(key, None)


class TestCacheService:

    def test_disabled_cache_always_loads(self):
        cache = CacheService.from_config({'CACHE_ENABLED': False})
        calls = []

        assert cache.enabled is False
        assert cache.read_through('a/b', lambda: calls.append(1) or {'x': 1}) == {'x': 1}
        assert cache.read_through('a/b', lambda: calls.append(1) or {'x': 1}) == {'x': 1}
        assert len(calls) == 2

    def test_read_through_keeps_decimals(self):
        client = FakeRedis()
        cache = CacheService(client, prefix='t')
        calls = []

        def loader():
            calls.append(1)
            return {'USD': Decimal('0.0113')}

        assert cache.read_through('/exchangeRates/rates', loader) == {'USD': Decimal('0.0113')}
        assert cache.read_through('exchangeRates/rates', loader) == {'USD': Decimal('0.0113')}
        assert len(calls) == 1
        assert 't:doc:exchangeRates/rates' in client.data

    def test_redis_errors_degrade_to_loader(self):
        client = FakeRedis()
        client.down = True
        cache = CacheService(client)

        assert cache.read_through('rates', lambda: {'INR': 1}) == {'INR': 1}
        cache.invalidate('rates')

    def test_undecodable_entry_is_dropped(self):
        client = FakeRedis()
        cache = CacheService(client, prefix='t')
        client.data['t:doc:rates'] = '{not json'

        assert cache.read('rates') is None
        assert 't:doc:rates' not in client.data


class TestRatesCaching:

    def test_admin_edit_invalidates_cached_table(self, seeded_store, admin_context):
        client = FakeRedis()
        rates = ExchangeRateService(seeded_store, AuditLogger(seeded_store), cache=CacheService(client))

        assert 'AED' not in rates.get_rates()
        assert any(key.endswith(RATES_PATH) for key in client.data)

        rates.set_rate('AED', '0.0418', admin_context)

        assert client.data == {}
        assert rates.get_rates()['AED'] == Decimal('0.0418')
