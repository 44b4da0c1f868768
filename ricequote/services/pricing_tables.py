"""
Static rate tables for quotes, in the base currency (INR).

Freight is quoted per tonne and inland transport per quintal (100 kg).
"""
from decimal import Decimal
from typing import Dict, List, Optional

# Per-bag packing surcharge
PACKING_PRICES: Dict[str, Decimal] = {
    'PP (Polypropylene Woven Bags)': Decimal('43.99'),
    'Non-Woven Bags': Decimal('52.79'),
    'Jute Bags': Decimal('87.98'),
    'BOPP (Biaxially Oriented Polypropylene) Laminated Bags': Decimal('61.59'),
    'LDPE (Low Density Polyethylene) Pouches': Decimal('35.19'),
}

# Custom logo printing, flat
BRANDING_PRICE = Decimal('879.80')

# Insurance share of the goods value under CIF
INSURANCE_RATE = Decimal('0.01')

FREIGHT_PER_TONNE: Dict[str, Decimal] = {
    'Mundra': Decimal('4399'),
    'Kandla': Decimal('4839'),
    'Nhava Sheva': Decimal('5279'),
    'Chennai': Decimal('5719'),
    'Vizag': Decimal('6159'),
    'Kolkata': Decimal('6599'),
}

PORT_DISPLAY_NAMES: Dict[str, str] = {
    'Mundra': 'Mundra Port',
    'Kandla': 'Kandla Port',
    'Nhava Sheva': 'Nhava Sheva',
    'Chennai': 'Chennai',
    'Vizag': 'Vizag',
    'Kolkata': 'Kolkata',
}

# State -> port -> INR per quintal, road/rail to the port
TRANSPORT_ROUTES: Dict[str, Dict[str, Decimal]] = {
    'Punjab': {'Mundra': Decimal('280'), 'Kandla': Decimal('290'), 'Nhava Sheva': Decimal('320')},
    'Haryana': {'Mundra': Decimal('260'), 'Kandla': Decimal('270'), 'Nhava Sheva': Decimal('300')},
    'Uttar Pradesh': {'Mundra': Decimal('310'), 'Kandla': Decimal('320'), 'Nhava Sheva': Decimal('330'),
                      'Kolkata': Decimal('290')},
    'Madhya Pradesh': {'Mundra': Decimal('240'), 'Kandla': Decimal('250'), 'Nhava Sheva': Decimal('220')},
    'Gujarat': {'Mundra': Decimal('90'), 'Kandla': Decimal('80'), 'Nhava Sheva': Decimal('180')},
    'Maharashtra': {'Nhava Sheva': Decimal('110'), 'Mundra': Decimal('210'), 'Kandla': Decimal('220')},
    'Andhra Pradesh': {'Vizag': Decimal('120'), 'Chennai': Decimal('160')},
    'Telangana': {'Vizag': Decimal('170'), 'Chennai': Decimal('190'), 'Nhava Sheva': Decimal('260')},
    'Tamil Nadu': {'Chennai': Decimal('100'), 'Vizag': Decimal('210')},
    'West Bengal': {'Kolkata': Decimal('90'), 'Vizag': Decimal('230')},
    'Odisha': {'Vizag': Decimal('140'), 'Kolkata': Decimal('150')},
    'Chhattisgarh': {'Vizag': Decimal('180'), 'Kolkata': Decimal('220')},
}


def _fold(name: Optional[str]) -> str:
    return (name or '').strip().casefold()


def canonical_port(name: Optional[str]) -> Optional[str]:
    """Map a port code or display name ("Mundra Port") to its code."""
    folded = _fold(name)
    if not folded:
        return None
    for code, display in PORT_DISPLAY_NAMES.items():
        if folded in (_fold(code), _fold(display)):
            return code
    return None


def canonical_packing(name: Optional[str]) -> Optional[str]:
    folded = _fold(name)
    for packing in PACKING_PRICES:
        if folded == _fold(packing):
            return packing
    return None


def get_transport_price(state: Optional[str], port: Optional[str]) -> Optional[Decimal]:
    """Rate per quintal, or None when the route is not in the table."""
    code = canonical_port(port)
    folded_state = _fold(state)
    for name, routes in TRANSPORT_ROUTES.items():
        if _fold(name) == folded_state:
            return routes.get(code) if code else None
    return None


def get_available_ports_for_state(state: Optional[str]) -> List[str]:
    folded_state = _fold(state)
    for name, routes in TRANSPORT_ROUTES.items():
        if _fold(name) == folded_state:
            return list(routes)
    return []
