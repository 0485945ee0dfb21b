from datetime import date, datetime, time
from decimal import Decimal

import pytest

from vetscheduling.repositories.memory_store import InMemoryStore
from vetscheduling.scheduling.booking import BookingService
from vetscheduling.scheduling.entities import AvailabilityWindow, PetRef, ServiceInfo, VeterinarianRef
from vetscheduling.scheduling.schemas import BookingRequest

MONDAY = date(2026, 1, 5)
NOW = datetime(2026, 1, 4, 8, 0)


def fixed_clock() -> datetime:
    return NOW


@pytest.fixture
def store() -> InMemoryStore:
    store = InMemoryStore()
    store.add_pet(PetRef(id=1, name='Luna'))
    store.add_pet(PetRef(id=2, name='Milo'))
    store.add_veterinarian(VeterinarianRef(id=1, name='Dr. Rivera'))
    store.add_veterinarian(VeterinarianRef(id=2, name='Dr. Okafor', active=False))
    store.add_service(
        ServiceInfo(
            id=1,
            name='General consultation',
            base_price=Decimal('40.00'),
            standard_duration_minutes=30,
            allows_house_calls=True,
            house_call_surcharge=Decimal('15.00'),
        )
    )
    store.add_service(ServiceInfo(id=2, name='Dental cleaning', base_price=Decimal('80.00'), active=False))
    store.add_window(AvailabilityWindow(veterinarian_id=1, day_of_week=0, window_start=time(9, 0),
                                        window_end=time(12, 0), slot_duration_minutes=30))
    store.add_window(AvailabilityWindow(veterinarian_id=1, day_of_week=1, window_start=time(14, 0),
                                        window_end=time(16, 0), slot_duration_minutes=20))
    store.add_window(AvailabilityWindow(veterinarian_id=2, day_of_week=0, window_start=time(9, 0),
                                        window_end=time(12, 0)))
    return store


@pytest.fixture
def booking_service(store: InMemoryStore) -> BookingService:
    return BookingService(store, clock=fixed_clock)


@pytest.fixture
def make_request():
    def build(**overrides) -> BookingRequest:
        fields = {
            'pet_id': 1,
            'veterinarian_id': 1,
            'service_id': 1,
            'appointment_date': MONDAY,
            'start_time': time(9, 0),
            'reason': 'Annual vaccination check',
        }
        fields.update(overrides)
        return BookingRequest(**fields)

    return build
