from fastapi import HTTPException, status

from parkb.schemas.common import Outcome
from parkb.utils.constants import ErrorKind


class ParkBException(HTTPException):
    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "An error occurred",
    ):
        super().__init__(status_code=status_code, detail=detail)


class AuthenticationError(ParkBException):
    def __init__(self, detail: str = "Could not identify the caller"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class AuthorizationError(ParkBException):
    def __init__(self, detail: str = "Not enough permissions"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class NotFoundError(ParkBException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ConflictError(ParkBException):
    def __init__(self, detail: str = "Resource conflict"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class CapacityRuleError(ParkBException):
    def __init__(self, detail: str = "Not enough free spots to accept reservations"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class SpotUnavailableError(ParkBException):
    def __init__(self, detail: str = "No parking spot is available"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class InvalidWindowError(ParkBException):
    def __init__(self, detail: str = "Invalid booking window"):
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


class StateConflictError(ParkBException):
    def __init__(self, detail: str = "Operation not allowed in the current state"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class GraceExpiredError(ParkBException):
    def __init__(self, detail: str = "Reservation expired"):
        super().__init__(status_code=status.HTTP_410_GONE, detail=detail)


ERROR_KIND_EXCEPTIONS: dict[ErrorKind, type[ParkBException]] = {
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.CAPACITY_RULE_VIOLATION: CapacityRuleError,
    ErrorKind.NO_AVAILABILITY: SpotUnavailableError,
    ErrorKind.INVALID_WINDOW: InvalidWindowError,
    ErrorKind.STATE_CONFLICT: StateConflictError,
    ErrorKind.GRACE_EXPIRED: GraceExpiredError,
}


def raise_for_outcome(outcome: Outcome) -> Outcome:
    """Pass a successful outcome through, or raise its HTTP counterpart."""
    if outcome.ok:
        return outcome
    exc_class = ERROR_KIND_EXCEPTIONS[outcome.error]
    raise exc_class(outcome.message or outcome.error.value)
