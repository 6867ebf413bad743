"""Unit tests for driver assignment and delivery counter bookkeeping"""

import pytest

from app.domain.fulfillment.bookkeeping import DeliveryBookkeeping
from app.domain.fulfillment.repository import DriverRepository
from app.domain.fulfillment.schemas import DriverCreate
from app.models import DeliveryCounterAdjustment, Driver
from app.shared.exceptions import ConflictError, NotFoundError, ValidationError

TO_DELIVERED = ["confirmed", "picked_up", "in_transit", "out_for_delivery", "delivered"]


def advance(booking_service, booking, statuses):
    for status in statuses:
        booking = booking_service.update_status(booking.id, status)
    return booking


def deliveries(db, driver_id):
    db.expire_all()
    return db.get(Driver, driver_id).total_deliveries


class TestDrivers:
    def test_create_and_get(self, fulfillment_service):
        driver = fulfillment_service.create_driver(
            DriverCreate(firstName="Esi", lastName="Asante", email="Esi@Example.com")
        )
        assert driver.email == "esi@example.com"
        assert driver.status == "active"
        assert driver.total_deliveries == 0
        assert fulfillment_service.get_driver(driver.id).full_name == "Esi Asante"

    def test_duplicate_email_conflicts(self, fulfillment_service, driver):
        with pytest.raises(ConflictError):
            fulfillment_service.create_driver(
                DriverCreate(firstName="A", lastName="B", email=driver.email)
            )

    def test_update_status(self, fulfillment_service, driver):
        assert fulfillment_service.update_driver_status(driver.id, "suspended").status == "suspended"
        with pytest.raises(ValidationError):
            fulfillment_service.update_driver_status(driver.id, "retired")

    def test_missing_driver(self, fulfillment_service):
        with pytest.raises(NotFoundError):
            fulfillment_service.get_driver(42)

    def test_list_driver_bookings(self, fulfillment_service, booking_service, sample_booking_data, driver):
        mine = booking_service.create_booking(**sample_booking_data)
        booking_service.create_booking(**sample_booking_data)
        booking_service.update_status(mine.id, "confirmed")
        fulfillment_service.assign(driver.id, mine.id)

        bookings, total = fulfillment_service.list_driver_bookings(driver.id)
        assert total == 1
        assert bookings[0].id == mine.id


class TestAssign:
    def test_assign_confirmed_advances_to_picked_up(self, fulfillment_service, booking_service, booking, driver, clock):
        booking_service.update_status(booking.id, "confirmed")

        result = fulfillment_service.assign(driver.id, booking.id)

        assert result.status == "picked_up"
        assert result.driverId == driver.id
        assert result.reassigned is False
        assert result.previousDriverId is None
        refreshed = booking_service.get_booking(booking.id)
        assert refreshed.driver_id == driver.id
        assert refreshed.picked_up_at == clock.now

    def test_pending_booking_not_assignable(self, fulfillment_service, booking, driver):
        with pytest.raises(ValidationError):
            fulfillment_service.assign(driver.id, booking.id)

    @pytest.mark.parametrize("final_status", ["cancelled", "failed"])
    def test_closed_booking_not_assignable(self, fulfillment_service, booking_service, booking, driver, final_status):
        booking_service.update_status(booking.id, final_status)
        with pytest.raises(ValidationError):
            fulfillment_service.assign(driver.id, booking.id)

    def test_inactive_driver_rejected(self, fulfillment_service, booking_service, booking, make_driver):
        inactive = make_driver("off.duty@example.com", status="inactive")
        booking_service.update_status(booking.id, "confirmed")
        with pytest.raises(ValidationError):
            fulfillment_service.assign(inactive.id, booking.id)

    def test_missing_driver_or_booking(self, fulfillment_service, booking, driver):
        with pytest.raises(NotFoundError):
            fulfillment_service.assign(999, booking.id)
        with pytest.raises(NotFoundError):
            fulfillment_service.assign(driver.id, 999)

    def test_reassign_in_transit_leaves_counters(self, fulfillment_service, booking_service, booking, make_driver, db):
        first = make_driver("first@example.com", total_deliveries=3)
        second = make_driver("second@example.com", total_deliveries=7)
        booking_service.update_status(booking.id, "confirmed")
        fulfillment_service.assign(first.id, booking.id)
        booking_service.update_status(booking.id, "in_transit")

        result = fulfillment_service.assign(second.id, booking.id)

        assert result.reassigned is True
        assert result.previousDriverId == first.id
        assert result.status == "in_transit"
        assert deliveries(db, first.id) == 3
        assert deliveries(db, second.id) == 7
        assert db.query(DeliveryCounterAdjustment).count() == 0

    def test_reassign_delivered_moves_one_delivery(self, fulfillment_service, booking_service, booking, make_driver, db):
        first = make_driver("first@example.com", total_deliveries=3)
        second = make_driver("second@example.com", total_deliveries=7)
        booking_service.update_status(booking.id, "confirmed", driver_id=first.id)
        advance(booking_service, booking, TO_DELIVERED[1:])
        assert deliveries(db, first.id) == 4

        result = fulfillment_service.assign(second.id, booking.id)

        assert result.countersAdjusted is True
        assert result.status == "delivered"
        assert deliveries(db, first.id) == 3
        assert deliveries(db, second.id) == 8

    def test_decrement_floors_at_zero(self, fulfillment_service, booking_service, booking, make_driver, db):
        first = make_driver("first@example.com")
        second = make_driver("second@example.com")
        advance(booking_service, booking, TO_DELIVERED)
        fulfillment_service.assign(first.id, booking.id)
        db.query(Driver).filter(Driver.id == first.id).update({"total_deliveries": 0})
        db.commit()

        fulfillment_service.assign(second.id, booking.id)

        assert deliveries(db, first.id) == 0
        assert deliveries(db, second.id) == 1

    def test_repeat_assignment_is_idempotent(self, fulfillment_service, booking_service, booking, make_driver, db):
        first = make_driver("first@example.com")
        second = make_driver("second@example.com")
        advance(booking_service, booking, TO_DELIVERED)
        fulfillment_service.assign(first.id, booking.id)
        fulfillment_service.assign(second.id, booking.id)

        result = fulfillment_service.assign(second.id, booking.id)

        assert result.reassigned is False
        assert deliveries(db, first.id) == 0
        assert deliveries(db, second.id) == 1

    def test_counter_failure_keeps_assignment(
        self, fulfillment_service, booking_service, booking, make_driver, db, monkeypatch
    ):
        first = make_driver("first@example.com", total_deliveries=5)
        second = make_driver("second@example.com", total_deliveries=5)
        booking_service.update_status(booking.id, "confirmed", driver_id=first.id)
        advance(booking_service, booking, TO_DELIVERED[1:])

        def broken_increment(db, driver_id):
            raise RuntimeError("counter store unavailable")

        monkeypatch.setattr(DriverRepository, "increment_deliveries", staticmethod(broken_increment))
        result = fulfillment_service.assign(second.id, booking.id)

        assert result.countersAdjusted is False
        assert booking_service.get_booking(booking.id).driver_id == second.id
        # the decrement leg went through before the increment failed
        assert deliveries(db, first.id) == 5
        assert deliveries(db, second.id) == 5

        monkeypatch.undo()
        summary = fulfillment_service.apply_pending_adjustments()

        assert summary == {"checked": 1, "completed": 1, "failed": 0}
        assert deliveries(db, first.id) == 5
        assert deliveries(db, second.id) == 6


class TestBookkeeping:
    def test_reapplying_never_double_counts(self, fulfillment_service, booking_service, booking, make_driver, db, clock):
        first = make_driver("first@example.com", total_deliveries=2)
        second = make_driver("second@example.com", total_deliveries=2)
        advance(booking_service, booking, TO_DELIVERED)
        fulfillment_service.assign(first.id, booking.id)
        fulfillment_service.assign(second.id, booking.id)

        adjustment = (
            db.query(DeliveryCounterAdjustment)
            .filter(DeliveryCounterAdjustment.from_driver_id == first.id)
            .one()
        )
        bookkeeping = DeliveryBookkeeping(db, clock=clock)
        assert bookkeeping.apply(adjustment) is True
        adjustment.applied_at = None
        db.commit()
        assert bookkeeping.apply(adjustment) is True

        # first: 2 +1 (assigned while delivered) -1 (moved away); second: 2 +1
        assert deliveries(db, first.id) == 2
        assert deliveries(db, second.id) == 3

    def test_recording_same_event_twice_returns_existing(self, booking_service, booking, driver, db, clock):
        advance(booking_service, booking, TO_DELIVERED)
        bookkeeping = DeliveryBookkeeping(db, clock=clock)
        booking = booking_service.get_booking(booking.id)

        one = bookkeeping.record(booking, None, driver.id)
        db.commit()
        two = bookkeeping.record(booking, None, driver.id)

        assert one.id == two.id
