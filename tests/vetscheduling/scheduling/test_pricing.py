from decimal import Decimal

import pytest

from vetscheduling.scheduling.entities import ServiceInfo
from vetscheduling.scheduling.pricing import calculate_final_price

CONSULTATION = ServiceInfo(
    id=1,
    name='General consultation',
    base_price=Decimal('40.00'),
    allows_house_calls=True,
    house_call_surcharge=Decimal('15.00'),
)


@pytest.mark.parametrize(
    ('is_emergency', 'is_house_call', 'expected'),
    [
        (False, False, Decimal('40.00')),
        (True, False, Decimal('60.00')),
        (False, True, Decimal('55.00')),
        (True, True, Decimal('75.00')),
    ],
)
def test_calculate_final_price(is_emergency: bool, is_house_call: bool, expected: Decimal) -> None:
    assert calculate_final_price(CONSULTATION, is_emergency, is_house_call) == expected


def test_house_call_surcharge_ignored_when_service_does_not_do_house_calls() -> None:
    service = ServiceInfo(id=2, name='Surgery', base_price=Decimal('250.00'), house_call_surcharge=Decimal('30.00'))

    assert calculate_final_price(service, is_house_call=True) == Decimal('250.00')


def test_house_call_uses_default_surcharge_when_service_has_none() -> None:
    service = ServiceInfo(id=3, name='Vaccination', base_price=Decimal('25.00'), allows_house_calls=True)

    price = calculate_final_price(service, is_house_call=True, default_house_call_surcharge=Decimal('10'))

    assert price == Decimal('35.00')


def test_emergency_price_is_rounded_to_cents() -> None:
    service = ServiceInfo(id=4, name='Wound care', base_price=Decimal('33.33'))

    assert calculate_final_price(service, is_emergency=True) == Decimal('50.00')
    assert calculate_final_price(service, is_emergency=True, emergency_multiplier=Decimal('2')) == Decimal('66.66')
