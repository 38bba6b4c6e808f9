import pytest

from busline.core.errors import InvalidStateTransition
from busline.domain.enums import BookingStatus, HiringStatus
from busline.models.booking import Booking
from busline.models.hiring import Hiring
from busline.services import lifecycle


@pytest.mark.parametrize("status", [
    BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.NO_SHOW, BookingStatus.REFUNDED,
])
def test_terminal_booking_states(status):
    booking = Booking(status=status)
    assert lifecycle.is_terminal(booking)
    assert not lifecycle.can_transition(booking, BookingStatus.CONFIRMED)


@pytest.mark.parametrize("current,target,allowed", [
    (HiringStatus.PENDING, HiringStatus.APPROVED, True),
    (HiringStatus.PENDING, HiringStatus.CONFIRMED, False),
    (HiringStatus.APPROVED, HiringStatus.CONFIRMED, True),
    (HiringStatus.CONFIRMED, HiringStatus.IN_PROGRESS, True),
    (HiringStatus.IN_PROGRESS, HiringStatus.CANCELLED, False),
    (HiringStatus.IN_PROGRESS, HiringStatus.COMPLETED, True),
    (HiringStatus.REJECTED, HiringStatus.APPROVED, False),
])
def test_hiring_transitions(current, target, allowed):
    assert lifecycle.can_transition(Hiring(status=current), target) is allowed


def test_transition_records_history(db, make_booking, admin):
    booking = make_booking()
    lifecycle.transition(db, booking, "Confirmed", admin.id, "paid at counter")
    db.commit()

    history = lifecycle.status_history(db, booking)
    assert [h.status for h in history] == ["Pending", "Confirmed"]
    assert history[-1].actor == admin.id
    assert history[-1].notes == "paid at counter"


def test_rejected_transition_leaves_status(db, make_booking, admin):
    booking = make_booking()
    lifecycle.transition(db, booking, BookingStatus.COMPLETED, admin.id)
    with pytest.raises(InvalidStateTransition) as exc:
        lifecycle.transition(db, booking, BookingStatus.CONFIRMED, admin.id)
    assert exc.value.details == {"current": "Completed", "requested": "Confirmed"}
    assert booking.status == BookingStatus.COMPLETED
