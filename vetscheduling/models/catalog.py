"""Reference catalog tables read by the scheduling engine."""

from sqlalchemy import Boolean, Column, Integer, Numeric, String

from vetscheduling.database import Base


class Pet(Base):
    """A patient; owners and clinical history live elsewhere."""
    __tablename__ = "pets"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    active = Column(Boolean, nullable=False, default=True)


class Veterinarian(Base):
    """Staff member who can be booked. Only the active flag matters here."""
    __tablename__ = "veterinarians"

    id = Column(Integer, primary_key=True)
    name = Column(String(150), nullable=False)
    active = Column(Boolean, nullable=False, default=True)


class VetService(Base):
    """Bookable clinic service and its pricing inputs."""
    __tablename__ = "services"

    id = Column(Integer, primary_key=True)
    name = Column(String(150), nullable=False)
    base_price = Column(Numeric(10, 2), nullable=False)
    standard_duration_minutes = Column(Integer)
    active = Column(Boolean, nullable=False, default=True)
    allows_house_calls = Column(Boolean, nullable=False, default=False)
    house_call_surcharge = Column(Numeric(10, 2))
