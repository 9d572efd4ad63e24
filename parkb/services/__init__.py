from parkb.services import (
    allocation,
    availability,
    codes,
    extension,
    lifecycle,
    scheduler,
    spots,
    user,
)

__all__ = [
    "availability",
    "allocation",
    "codes",
    "lifecycle",
    "extension",
    "scheduler",
    "spots",
    "user",
]
