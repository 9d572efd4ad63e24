from sqlalchemy import Boolean
from sqlalchemy.orm import Mapped, mapped_column, relationship

from parkb.models.base import BaseModel


class Spot(BaseModel):
    __tablename__ = "spots"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)
    is_occupied: Mapped[bool] = mapped_column(Boolean, default=False, index=True)

    # Relationships
    sessions: Mapped[list["ParkingSession"]] = relationship(back_populates="spot")  # noqa: F821
    reservations: Mapped[list["Reservation"]] = relationship(back_populates="spot")  # noqa: F821
