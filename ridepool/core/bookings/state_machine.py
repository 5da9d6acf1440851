# ridepool/core/bookings/state_machine.py
from ridepool.common.constants import TripStatus


class TripStateMachine:
    ALLOWED_TRANSITIONS = {
        TripStatus.PLANNED: [TripStatus.IN_PROGRESS, TripStatus.CANCELLED],
        TripStatus.IN_PROGRESS: [TripStatus.COMPLETED, TripStatus.CANCELLED],
        TripStatus.COMPLETED: [],
        TripStatus.CANCELLED: [],
    }

    @staticmethod
    def can_transition(current_status: str, new_status: str) -> bool:
        try:
            curr = TripStatus(current_status)
            new = TripStatus(new_status)
            return new in TripStateMachine.ALLOWED_TRANSITIONS.get(curr, [])
        except ValueError:
            return False
