"""
Bus and route reference tables.

Both are owned by catalog management; the reservation engine only reads
them to learn a bus's seat universe (capacity) and a route's per-seat price.
Seats are numbered 1..capacity and drawn 2+2 per row by the UI.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Float,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
)
from sqlalchemy.orm import relationship

from busreserve.db.base import Base, TimestampMixin


class Route(Base, TimestampMixin):
    __tablename__ = "routes"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    from_location = Column(String(255), nullable=False)
    to_location = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    pickup_locations = Column(JSON, nullable=False, default=list)
    distance = Column(Float, nullable=False, default=0)
    duration = Column(Float, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    buses = relationship("Bus", back_populates="route")

    __table_args__ = (
        CheckConstraint("price >= 0", name="check_route_price_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Route(id={self.id}, {self.from_location}->{self.to_location}, price={self.price})>"


class Bus(Base, TimestampMixin):
    __tablename__ = "buses"

    id = Column(Integer, primary_key=True, index=True)
    bus_number = Column(String(50), unique=True, nullable=False)
    bus_type = Column(String(20), nullable=False, default="normal")  # luxury, semi_luxury, normal
    capacity = Column(Integer, nullable=False)
    departure_time = Column(String(5), nullable=False, default="08:00")
    route_id = Column(Integer, ForeignKey("routes.id"), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    route = relationship("Route", back_populates="buses")

    __table_args__ = (
        CheckConstraint("capacity BETWEEN 1 AND 100", name="check_bus_capacity_range"),
        CheckConstraint(
            "bus_type IN ('luxury', 'semi_luxury', 'normal')", name="check_bus_type"
        ),
    )

    def __repr__(self) -> str:
        return f"<Bus(id={self.id}, number={self.bus_number}, capacity={self.capacity})>"
