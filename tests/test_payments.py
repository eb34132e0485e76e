import warnings

import pytest

import db
import payments
import students
from errors import StaleDataWarning, ValidationError


def test_payment_and_discount_clear_the_balance(student, add_enrollment):
    add_enrollment(student.id, total_amount=700)

    recorded = payments.record_payment(student.id, amount="500", discount="200", method="cash", note="March")

    assert recorded.amount == 500
    assert recorded.discount == 200
    assert recorded.balance.remaining == 0
    assert recorded.balance.remaining_signed == 0
    assert len(recorded.transaction_ids) == 2

    ledger = {t.id: t for t in payments.list_transactions(student.id)}
    payment, discount = (ledger[i] for i in recorded.transaction_ids)
    assert payment.kind == "payment"
    assert payment.payment_method == "cash"
    assert payment.payment_type == "tuition"
    assert payment.status == "completed"
    assert payment.description == "March"
    assert discount.is_discount
    assert discount.payment_type == "discount"
    assert discount.payment_method == "discount"
    assert discount.description.startswith("Discount:")


def test_no_discount_row_when_discount_is_zero(student, add_enrollment):
    add_enrollment(student.id, total_amount=700)
    recorded = payments.record_payment(student.id, amount=300, discount=0, method="qr")
    assert len(recorded.transaction_ids) == 1
    assert recorded.balance.remaining == 400
    assert db.count("transactions") == 1


def test_mark_full_paid_records_whatever_is_owed(student, add_enrollment):
    add_enrollment(student.id, total_amount=1200)
    recorded = payments.record_payment(student.id, amount="ignored", method="card", mark_full_paid=True)
    assert recorded.amount == 1200
    assert recorded.balance.remaining == 0


def test_mark_full_paid_with_discount_lands_on_zero(student, add_enrollment):
    add_enrollment(student.id, total_amount=1200)
    payments.record_payment(student.id, amount=200)
    recorded = payments.record_payment(student.id, discount=100, mark_full_paid=True)
    assert recorded.amount == 900
    assert recorded.balance.remaining_signed == 0


def test_mark_full_paid_warns_when_balance_moved(student, add_enrollment):
    add_enrollment(student.id, total_amount=1200)
    with pytest.warns(StaleDataWarning):
        recorded = payments.record_payment(student.id, mark_full_paid=True, expected_remaining=1000)
    assert recorded.amount == 1200


def test_mark_full_paid_matching_figure_does_not_warn(student, add_enrollment):
    add_enrollment(student.id, total_amount=1200)
    with warnings.catch_warnings():
        warnings.simplefilter("error", StaleDataWarning)
        payments.record_payment(student.id, mark_full_paid=True, expected_remaining=1200)


def test_mark_full_paid_with_nothing_owed(student, add_enrollment):
    add_enrollment(student.id, total_amount=500)
    payments.record_payment(student.id, amount=500)
    with pytest.raises(ValidationError):
        payments.record_payment(student.id, mark_full_paid=True)
    assert db.count("transactions") == 1


@pytest.mark.parametrize("amount", [0, "0", "", None, "-10", "abc"])
def test_amount_must_be_positive(student, amount):
    with pytest.raises(ValidationError):
        payments.record_payment(student.id, amount=amount)
    assert db.count("transactions") == 0


def test_bad_method_and_discount_reported_together(student):
    with pytest.raises(ValidationError) as exc:
        payments.record_payment(student.id, amount=100, discount="-1", method="cheque")
    assert len(exc.value.messages) == 2


def test_unknown_student(fresh_db):
    with pytest.raises(ValidationError):
        payments.record_payment(12345, amount=100)


def test_subscribers_get_the_event(student, add_enrollment):
    add_enrollment(student.id, total_amount=1000)
    events = payments.PaymentEvents()
    seen = []
    events.subscribe(seen.append)

    @events.subscribe
    def broken(event):
        raise RuntimeError("printer offline")

    recorded = payments.record_payment(student.id, amount=400, discount=100, method="upi", events=events)

    assert seen == [recorded]
    event = seen[0]
    assert event.student_name == "Ram Thapa"
    assert event.student_phone == "9811111111"
    assert event.method == "upi"
    assert event.course == "Car"
    assert event.balance.remaining == 500
    assert event.date
    assert db.count("transactions") == 2



def test_event_course_covers_every_enrollment(student, add_enrollment):
    add_enrollment(student.id, license_type="bike", total_amount=500)
    add_enrollment(student.id, license_type="car", total_amount=1000)
    recorded = payments.record_payment(student.id, amount=300)
    assert recorded.course == "Car & Motorcycle"

def test_unsubscribe(student, add_enrollment):
    add_enrollment(student.id, total_amount=1000)
    events = payments.PaymentEvents()
    seen = []
    events.subscribe(seen.append)
    events.unsubscribe(seen.append)
    payments.record_payment(student.id, amount=100, events=events)
    assert seen == []


def test_delete_transaction_restores_balance(student, add_enrollment):
    add_enrollment(student.id, total_amount=1000)
    recorded = payments.record_payment(student.id, amount=400)
    payments.delete_transaction(recorded.transaction_ids[0])
    assert payments.student_balance(student.id).remaining == 1000


def test_transactions_report_labels(student, add_enrollment):
    add_enrollment(student.id, license_type="car")
    add_enrollment(student.id, license_type="bike")
    payments.record_payment(student.id, amount=100, discount=50)

    rows = payments.transactions_report()
    assert len(rows) == 2
    assert {r["enrollment_type"] for r in rows} == {"Car & Motorcycle"}
    assert {r["full_name"] for r in rows} == {"Ram Thapa"}
    assert sorted(r["is_discount"] for r in rows) == [False, True]



def test_transactions_report_filters(student, add_enrollment):
    other = students.create_student("Gita Shrestha", "9822222222")
    payments.record_payment(student.id, amount=100, discount=50)
    payments.record_payment(other.id, amount=200)

    assert [r["amount"] for r in payments.transactions_report(kind="discount")] == [50]
    assert sorted(r["amount"] for r in payments.transactions_report(kind="payment")) == [100, 200]
    assert [r["amount"] for r in payments.transactions_report(other.id)] == [200]
    assert payments.transactions_report(other.id, kind="discount") == []

def test_enrollment_type_label():
    assert payments.enrollment_type_label([]) == "Unknown"
    assert payments.enrollment_type_label(["car", "car"]) == "Car"
    assert payments.enrollment_type_label(["bike"]) == "Motorcycle"
    assert payments.enrollment_type_label(["bike", "car"]) == "Car & Motorcycle"
