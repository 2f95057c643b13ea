"""Domain enumerations and state-transition rules."""

import enum


class DeliveryFailure(str, enum.Enum):
    """Why a delivery charge could not be produced."""

    MISSING_COORDINATES = "MISSING_COORDINATES"
    NO_DELIVERABLE_STORE = "NO_DELIVERABLE_STORE"
    UNCONFIRMED_MULTI_STORE = "UNCONFIRMED_MULTI_STORE"
    UNRESOLVABLE_ALLOCATION = "UNRESOLVABLE_ALLOCATION"


class SubmissionStatus(str, enum.Enum):
    PENDING = "PENDING"
    PLACED = "PLACED"
    FAILED = "FAILED"


# State machine: maps current status -> set of valid next statuses
SUBMISSION_TRANSITIONS: dict[SubmissionStatus, set[SubmissionStatus]] = {
    SubmissionStatus.PENDING: {SubmissionStatus.PLACED, SubmissionStatus.FAILED},
    SubmissionStatus.FAILED: {SubmissionStatus.PENDING},
    SubmissionStatus.PLACED: set(),
}
