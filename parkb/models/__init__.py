from parkb.models.reservation import Reservation
from parkb.models.session import ParkingSession
from parkb.models.spot import Spot
from parkb.models.user import User

__all__ = [
    "User",
    "Spot",
    "Reservation",
    "ParkingSession",
]
