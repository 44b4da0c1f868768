import pytest
from decimal import Decimal

from ricequote import create_app
from ricequote.database import Base, build_engine, build_session_factory
from ricequote.models import ActorContext, CustomerInfo
from ricequote.services.document_store import DocumentStore
from ricequote.services.registry import build_services, get_services


CATALOG = {
    'pusa-basmati': {
        'product': {
            'name': {'en': 'Pusa Basmati Rice'},
            'category': 'Basmati',
            'price': '₹9,500-14,600 per qtls',
            'hsn': '10063020',
        },
        'grades': {
            'g1': {'grade': 'Grade A', 'price_inr': Decimal('95'), 'moq': 10},
            'g2': {'grade': 'Grade B', 'price_inr': Decimal('80'), 'moq': 10},
        },
    },
    'basmati-1121': {
        'product': {
            'name': {'en': '1121 Basmati Rice'},
            'category': 'Basmati',
            'price': '₹11,000-13,000 per qtls',
        },
        'grades': {
            'a1': {'grade': '1121 Steam A', 'price_inr': Decimal('110')},
            'a2': {'grade': 'Golden Sella', 'price_inr_per_kg': 98.5},
            'a3': {'grade': 'Free Sample', 'price_inr': 0},
        },
    },
    'steam-collection': {
        'product': {'name': {'en': 'Steam Collection'}, 'category': 'Basmati', 'price': '₹8,000 per qtls'},
        'grades': {
            'k1': {'grade': '1121 Steam A', 'price_inr': Decimal('120')},
            'k2': {'grade': 'Steam A', 'price_inr': Decimal('100')},
        },
    },
    'sona-masoori': {
        'product': {'name': {'en': 'Sona Masoori'}, 'category': 'Non-Basmati', 'price': 'Price on request'},
        'grades': {},
    },
}


def seed_catalog(store):
    for product_id, entry in CATALOG.items():
        store.set(f'products/{product_id}', entry['product'])
        for key, grade in entry['grades'].items():
            store.set(f'products/{product_id}/grades/{key}', grade)


@pytest.fixture(scope='function')
def engine():
    """Fresh in-memory database per test."""
    from ricequote import models  # noqa: F401
    engine = build_engine('sqlite://')
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope='function')
def store(engine):
    return DocumentStore(build_session_factory(engine))


@pytest.fixture(scope='function')
def seeded_store(store):
    seed_catalog(store)
    return store


@pytest.fixture(scope='function')
def services(seeded_store):
    """Engine services over a seeded in-memory store, cache disabled."""
    return build_services(seeded_store, whatsapp_number='919000000000')


@pytest.fixture
def admin_context():
    return ActorContext(cached_profile={'email': 'admin@sai.test', 'uid': 'admin-1'})


@pytest.fixture
def user_context():
    return ActorContext(session_user={'email': 'buyer@example.com', 'uid': 'user-1'})


@pytest.fixture
def customer():
    return CustomerInfo.from_payload({
        'full_name': 'Asha Rao',
        'email': 'asha@example.com',
        'country_code': '+91',
        'phone_number': '9876543210',
        'street': '12 Market Road',
        'city': 'Karnal',
        'address_state': 'Haryana',
        'address_country': 'India',
        'pincode': '132001',
    })


@pytest.fixture(scope='function')
def app():
    """Create application instance for testing."""
    app = create_app('config.TestConfig')
    with app.app_context():
        seed_catalog(get_services().store)
    return app


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def admin_client(app):
    """Test client whose session carries a cached admin profile."""
    client = app.test_client()
    with client.session_transaction() as sess:
        sess['profile'] = {'email': 'admin@sai.test', 'uid': 'admin-1'}
    return client


@pytest.fixture
def customer_payload():
    return {
        'full_name': 'Asha Rao',
        'email': 'asha@example.com',
        'country_code': '+91',
        'phone_number': '9876543210',
        'street': '12 Market Road',
        'city': 'Karnal',
        'address_state': 'Haryana',
        'address_country': 'India',
        'pincode': '132001',
    }
