from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from parkb.models.base import BaseModel


class ParkingSession(BaseModel):
    __tablename__ = "parking_sessions"

    id: Mapped[int] = mapped_column(primary_key=True)
    code: Mapped[int] = mapped_column(Integer, unique=True, index=True)
    spot_id: Mapped[int] = mapped_column(ForeignKey("spots.id"))
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    reservation_id: Mapped[int | None] = mapped_column(
        ForeignKey("reservations.id"), nullable=True
    )
    entry_date: Mapped[date] = mapped_column(Date)
    started_at: Mapped[datetime] = mapped_column(DateTime)
    estimated_end: Mapped[datetime] = mapped_column(DateTime)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)
    is_ordered: Mapped[bool] = mapped_column(Boolean, default=False)
    is_late: Mapped[bool] = mapped_column(Boolean, default=False)
    is_extended: Mapped[bool] = mapped_column(Boolean, default=False)

    # Relationships
    spot: Mapped["Spot"] = relationship(back_populates="sessions")  # noqa: F821
    user: Mapped["User"] = relationship(back_populates="sessions")  # noqa: F821
    reservation: Mapped["Reservation | None"] = relationship(back_populates="session")  # noqa: F821
