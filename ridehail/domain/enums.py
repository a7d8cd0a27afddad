"""Domain enumerations and state-transition rules."""

import enum


class RideStatus(str, enum.Enum):
    WAITING = "waiting"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# State machine: maps current status -> set of valid next statuses
RIDE_TRANSITIONS: dict[RideStatus, set[RideStatus]] = {
    RideStatus.WAITING: {RideStatus.ACCEPTED, RideStatus.CANCELLED},
    RideStatus.ACCEPTED: {RideStatus.IN_PROGRESS, RideStatus.CANCELLED},
    RideStatus.IN_PROGRESS: {RideStatus.COMPLETED},
    RideStatus.COMPLETED: set(),
    RideStatus.CANCELLED: set(),
}

ACTIVE_STATUSES = frozenset(
    {RideStatus.WAITING, RideStatus.ACCEPTED, RideStatus.IN_PROGRESS}
)
TERMINAL_STATUSES = frozenset({RideStatus.COMPLETED, RideStatus.CANCELLED})


class UserRole(str, enum.Enum):
    CUSTOMER = "customer"
    DRIVER = "driver"
