from datetime import date

import pytest

import db
import enrollments
import utils
from conftest import FakeStore
from errors import InvalidSelection, RepositoryError, ValidationError
from pricing import PricingTable


@pytest.fixture
def pricing():
    return PricingTable(FakeStore())


def test_create_enrollment(student, pricing):
    e = enrollments.create_enrollment(student.id, "motorcycle", "1hr", 15, pricing, today=date(2024, 3, 1))

    assert e.license_type == "bike"
    assert e.course == "motorcycle"
    assert e.session_time == "1hr"
    assert e.payment_plan == 15
    assert e.total_amount == 5500
    assert e.start_date == "2024-03-01"
    assert e.end_date == "2024-03-16"
    assert e.status == "active"

    [stored] = enrollments.list_enrollments(student.id)
    assert stored == e


def test_end_date_crosses_month_and_leap_day(student, pricing):
    e = enrollments.create_enrollment(student.id, "car", "30min", 30, pricing, today=date(2024, 2, 15))
    assert e.end_date == "2024-03-16"
    assert utils.calc_end_date("2023-12-25", 7) == "2024-01-01"


def test_missing_fields(student, pricing):
    with pytest.raises(ValidationError) as exc:
        enrollments.create_enrollment(student.id, None, "", None, pricing)
    assert len(exc.value.messages) == 3
    assert enrollments.list_enrollments(student.id) == []


def test_unknown_selection_stores_nothing(student, pricing):
    with pytest.raises(InvalidSelection):
        enrollments.create_enrollment(student.id, "car", "1hr", 20, pricing)
    assert enrollments.list_enrollments(student.id) == []


def test_same_selection_same_price(student, pricing):
    a = enrollments.create_enrollment(student.id, "car", "1hr", 7, pricing)
    b = enrollments.create_enrollment(student.id, "car", "1hr", 7, pricing)
    assert a.total_amount == b.total_amount == 5000


def test_price_edit_does_not_reprice_existing(student, pricing):
    first = enrollments.create_enrollment(student.id, "car", "1hr", 7, pricing)
    pricing.set_price("car", "1hr", 7, 6500)
    second = enrollments.create_enrollment(student.id, "car", "1hr", 7, pricing)

    stored = {e.id: e for e in enrollments.list_enrollments(student.id)}
    assert stored[first.id].total_amount == 5000
    assert stored[second.id].total_amount == 6500


def test_store_error_is_passed_through(pricing):
    with pytest.raises(RepositoryError) as exc:
        enrollments.create_enrollment(9999, "car", "1hr", 7, pricing)
    assert "FOREIGN KEY" in str(exc.value)


def test_on_success_callback(student, pricing):
    seen = []
    e = enrollments.create_enrollment(student.id, "car", "30min", 1, pricing, on_success=seen.append)
    assert seen == [e]


def test_selection_steps(pricing):
    plan = enrollments.NoSelection().choose_course("car").choose_session_time("1hr").choose_plan("15")
    assert plan == enrollments.PlanSelected("car", "1hr", 15)
    assert plan.price(pricing) == 9000

    # Changing an earlier choice drops the later ones
    assert plan.choose_course("motorcycle") == enrollments.CourseSelected("motorcycle")
    assert plan.choose_session_time("30min") == enrollments.SessionTimeSelected("car", "30min")
    assert not hasattr(enrollments.CourseSelected("car"), "choose_plan")
    assert not hasattr(enrollments.SessionTimeSelected("car", "1hr"), "price")


def test_selection_rejects_unknown_values():
    with pytest.raises(InvalidSelection):
        enrollments.NoSelection().choose_course("truck")
    with pytest.raises(InvalidSelection):
        enrollments.CourseSelected("car").choose_session_time("45min")
    with pytest.raises(InvalidSelection):
        enrollments.SessionTimeSelected("car", "1hr").choose_plan(3)


def test_status_update_keeps_amount(student, pricing):
    e = enrollments.create_enrollment(student.id, "car", "1hr", 7, pricing)
    enrollments.set_enrollment_status(e.id, "completed")
    [stored] = enrollments.list_enrollments(student.id)
    assert stored.status == "completed"
    assert stored.total_amount == 5000

    with pytest.raises(ValidationError):
        enrollments.set_enrollment_status(e.id, "paused")


def test_delete_enrollment(student, pricing):
    e = enrollments.create_enrollment(student.id, "car", "1hr", 7, pricing)
    enrollments.delete_enrollment(e.id)
    assert db.count("enrollments") == 0
