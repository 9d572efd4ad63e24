from datetime import date, datetime, time

from sqlalchemy import Date, DateTime, ForeignKey, Integer, Text, Time
from sqlalchemy.orm import Mapped, mapped_column, relationship

from parkb.models.base import BaseModel
from parkb.utils.constants import BookingKind, ReservationState


class Reservation(BaseModel):
    __tablename__ = "reservations"

    id: Mapped[int] = mapped_column(primary_key=True)
    code: Mapped[int] = mapped_column(Integer, unique=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    spot_id: Mapped[int | None] = mapped_column(ForeignKey("spots.id"), nullable=True)
    reservation_date: Mapped[date] = mapped_column(Date, index=True)
    start_time: Mapped[time] = mapped_column(Time)
    # end_time <= start_time means the window runs past midnight
    end_time: Mapped[time] = mapped_column(Time)
    placed_at: Mapped[datetime] = mapped_column(DateTime)
    state: Mapped[ReservationState] = mapped_column(default=ReservationState.PREORDER, index=True)
    kind: Mapped[BookingKind] = mapped_column(default=BookingKind.PRECISION)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    user: Mapped["User"] = relationship(back_populates="reservations")  # noqa: F821
    spot: Mapped["Spot | None"] = relationship(back_populates="reservations")  # noqa: F821
    session: Mapped["ParkingSession | None"] = relationship(back_populates="reservation")  # noqa: F821
