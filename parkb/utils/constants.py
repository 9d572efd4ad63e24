from enum import Enum


class UserRole(str, Enum):
    SUBSCRIBER = "subscriber"
    ATTENDANT = "attendant"
    MANAGER = "manager"


class ReservationState(str, Enum):
    PREORDER = "preorder"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    FINISHED = "finished"


class BookingKind(str, Enum):
    STANDARD = "standard"
    PRECISION = "precision"


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    CAPACITY_RULE_VIOLATION = "capacity_rule_violation"
    NO_AVAILABILITY = "no_availability"
    INVALID_WINDOW = "invalid_window"
    STATE_CONFLICT = "state_conflict"
    GRACE_EXPIRED = "grace_expired"


# Reservations in these states keep their spot blocked for their window
SPOT_HOLDING_STATES = (ReservationState.PREORDER, ReservationState.ACTIVE)

PARKING_CODE_MIN = 100000
PARKING_CODE_MAX = 999999
