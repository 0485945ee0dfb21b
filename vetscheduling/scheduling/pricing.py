from decimal import ROUND_HALF_UP, Decimal

from vetscheduling.core import config
from vetscheduling.scheduling.entities import ServiceInfo

CENT = Decimal('0.01')


def calculate_final_price(
    service: ServiceInfo,
    is_emergency: bool = False,
    is_house_call: bool = False,
    emergency_multiplier: Decimal | None = None,
    default_house_call_surcharge: Decimal | None = None,
) -> Decimal:
    """Base price adjusted for emergency and house-call bookings.

    The emergency multiplier applies to the base price; the house-call surcharge is
    added afterwards and only for services that do house calls.
    """
    multiplier = config.EMERGENCY_PRICE_MULTIPLIER if emergency_multiplier is None else emergency_multiplier
    price = Decimal(service.base_price)

    if is_emergency:
        price = price * multiplier

    if is_house_call and service.allows_house_calls:
        surcharge = service.house_call_surcharge
        if surcharge is None:
            surcharge = (
                config.DEFAULT_HOUSE_CALL_SURCHARGE
                if default_house_call_surcharge is None
                else default_house_call_surcharge
            )
        price += Decimal(surcharge)

    return max(price, Decimal('0')).quantize(CENT, rounding=ROUND_HALF_UP)
