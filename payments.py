"""
payments.py
Recording payments (plus an optional discount) against a student's balance,
and reading the transaction ledger back.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Callable

import db
import students
import utils
from balance import Balance, compute_balance
from errors import StaleDataWarning, ValidationError
from models import (
    DISCOUNT_DESCRIPTION_PREFIX,
    DISCOUNT_METHOD,
    KIND_DISCOUNT,
    KIND_PAYMENT,
    LICENSE_LABELS,
    PAYMENT_METHODS,
    PAYMENT_TYPES,
    Enrollment,
    Transaction,
)

logger = logging.getLogger(__name__)

PAYMENT_ROW_TYPES = tuple(t for t in PAYMENT_TYPES if t != "discount")
# Amounts closer than this are treated as equal when checking for stale balances
CENT = 0.005


@dataclass(frozen=True)
class PaymentRecorded:
    """What was just written; enough for a receipt without another read."""
    student_id: int
    student_name: str
    student_phone: str
    course: str
    amount: float
    discount: float
    method: str
    date: str
    transaction_ids: tuple[int, ...]
    balance: Balance


class PaymentEvents:
    """Subscribers are told about every successful payment (e.g. receipt printing)."""

    def __init__(self):
        self._handlers: list[Callable[[PaymentRecorded], None]] = []

    def subscribe(self, handler: Callable[[PaymentRecorded], None]):
        self._handlers.append(handler)
        return handler

    def unsubscribe(self, handler: Callable[[PaymentRecorded], None]) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def emit(self, event: PaymentRecorded) -> None:
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                # The payment is already stored; a failing subscriber must not hide that
                logger.exception("Payment subscriber %r failed", handler)


# ---------- Reads ----------

def list_transactions(student_id: int | None = None) -> list[Transaction]:
    eq = {"student_id": student_id} if student_id is not None else None
    rows = db.select("transactions", eq=eq, order="transaction_date", ascending=False)
    return [Transaction.from_row(r) for r in rows]


def load_ledger(student_id: int) -> tuple[list[Enrollment], list[Transaction]]:
    enrollment_rows = db.select("enrollments", eq={"student_id": student_id}, order="start_date")
    return [Enrollment.from_row(r) for r in enrollment_rows], list_transactions(student_id)


def student_balance(student_id: int) -> Balance:
    return compute_balance(*load_ledger(student_id))


def enrollment_type_label(license_types) -> str:
    kinds = sorted(set(license_types))
    if not kinds:
        return "Unknown"
    if len(kinds) == 1:
        return LICENSE_LABELS.get(kinds[0], kinds[0])
    return "Car & Motorcycle"


def transactions_report(student_id: int | None = None, kind: str | None = None) -> list[dict]:
    """Ledger rows joined to the student's name/phone and their enrollment type."""
    sql = """
        SELECT t.*, s.full_name, s.phone
        FROM transactions t
        LEFT JOIN students s ON s.id = t.student_id
    """
    clauses, params = [], []
    if student_id is not None:
        clauses.append("t.student_id = ?")
        params.append(student_id)
    if kind is not None:
        clauses.append("t.kind = ?")
        params.append(kind)
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    sql += " ORDER BY t.transaction_date DESC, t.id DESC"
    rows = db.fetch_all(sql, tuple(params))

    ids = sorted({r["student_id"] for r in rows})
    types: dict[int, set[str]] = {}
    for e in db.select("enrollments", in_={"student_id": ids}):
        types.setdefault(e["student_id"], set()).add(e["license_type"])

    report = []
    for r in rows:
        item = dict(r)
        item["is_discount"] = Transaction.from_row(r).is_discount
        item["enrollment_type"] = enrollment_type_label(types.get(r["student_id"], ()))
        report.append(item)
    return report


# ---------- Writes ----------

def _payment_row(student_id: int, amount: float, method: str, payment_type: str, note: str | None) -> dict:
    return {
        "student_id": student_id,
        "amount": amount,
        "payment_method": method,
        "payment_type": payment_type,
        "status": "completed",
        "kind": KIND_PAYMENT,
        "description": note,
    }


def _discount_row(student_id: int, discount: float, note: str | None) -> dict:
    # Flag it every way readers have looked for discounts, plus the explicit kind
    return {
        "student_id": student_id,
        "amount": discount,
        "payment_method": DISCOUNT_METHOD,
        "payment_type": "discount",
        "status": "completed",
        "kind": KIND_DISCOUNT,
        "description": f"{DISCOUNT_DESCRIPTION_PREFIX} {note}" if note else f"{DISCOUNT_DESCRIPTION_PREFIX} applied at payment",
    }


def record_payment(
    student_id: int,
    amount=None,
    discount=0,
    method: str = "cash",
    note: str | None = None,
    mark_full_paid: bool = False,
    payment_type: str = "tuition",
    expected_remaining: float | None = None,
    events: PaymentEvents | None = None,
) -> PaymentRecorded:
    """
    Store a payment and, if given, a separate discount row in one batch.

    With `mark_full_paid` the amount is whatever is still owed right now
    (after the discount), read fresh from the store. `expected_remaining`
    is the figure the user was looking at; if it no longer matches, a
    StaleDataWarning is issued and the fresh figure wins.
    """
    errors: list[str] = []
    if method not in PAYMENT_METHODS:
        errors.append(f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}.")
    if payment_type not in PAYMENT_ROW_TYPES:
        errors.append(f"Payment type must be one of: {', '.join(PAYMENT_ROW_TYPES)}.")
    try:
        discount = utils.parse_amount(discount, "Discount")
    except ValidationError as e:
        errors.extend(e.messages)
    if not mark_full_paid:
        try:
            amount = utils.parse_amount(amount, "Amount", allow_zero=False)
        except ValidationError as e:
            errors.extend(e.messages)
    if errors:
        raise ValidationError(errors)
    note = (note or "").strip() or None

    student = students.require_student(student_id)

    if mark_full_paid:
        current = student_balance(student_id)
        if expected_remaining is not None and abs(current.remaining - float(expected_remaining)) > CENT:
            msg = (
                f"Balance for student {student_id} changed since it was shown "
                f"({expected_remaining} -> {current.remaining}); using the current figure."
            )
            logger.warning(msg)
            warnings.warn(msg, StaleDataWarning, stacklevel=2)
        amount = max(0.0, current.remaining - discount)
        if amount == 0 and discount == 0:
            raise ValidationError("Nothing left to pay.")

    rows = []
    if amount > 0:
        rows.append(_payment_row(student_id, amount, method, payment_type, note))
    if discount > 0:
        rows.append(_discount_row(student_id, discount, note))
    ids = db.insert("transactions", rows)

    owned, transactions = load_ledger(student_id)
    new_balance = compute_balance(owned, transactions)
    recorded_on = next((t.transaction_date for t in transactions if t.id == ids[0]), utils.today_iso())

    logger.info(
        "Payment recorded for student %s: %s via %s, discount %s, remaining %s",
        student_id, amount, method, discount, new_balance.remaining,
    )
    event = PaymentRecorded(
        student_id=student_id,
        student_name=student.full_name,
        student_phone=student.phone,
        course=enrollment_type_label(e.license_type for e in owned),
        amount=amount,
        discount=discount,
        method=method,
        date=recorded_on,
        transaction_ids=tuple(ids),
        balance=new_balance,
    )
    if events is not None:
        events.emit(event)
    return event


def delete_transaction(transaction_id: int) -> None:
    # Ledger rows are never edited, only removed
    db.delete("transactions", eq={"id": transaction_id})
    logger.info("Transaction %s deleted", transaction_id)
