from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from parkb.models.base import BaseModel
from parkb.utils.constants import UserRole


class User(BaseModel):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    full_name: Mapped[str] = mapped_column(String(255))
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    car_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    role: Mapped[UserRole] = mapped_column(default=UserRole.SUBSCRIBER)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Relationships
    reservations: Mapped[list["Reservation"]] = relationship(back_populates="user")  # noqa: F821
    sessions: Mapped[list["ParkingSession"]] = relationship(back_populates="user")  # noqa: F821
