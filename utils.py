"""
utils.py
Validation, dates, money formatting, exports, sample data.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta

import pandas as pd

import config
import db
from errors import ValidationError
from models import INSTRUCTOR_STATUSES, COURSES, STUDENT_STATUSES

PHONE_RE = re.compile(r"[0-9+\-\s()]{6,20}")
TIME_RE = re.compile(r"([01]\d|2[0-3]):[0-5]\d")


def today_iso() -> str:
    return date.today().isoformat()


def now_hhmm() -> str:
    return datetime.now().strftime("%H:%M")


def parse_iso(d: str) -> date:
    return date.fromisoformat(d)


def parse_timestamp(ts: str) -> datetime:
    # Store writes "YYYY-MM-DDTHH:MM:SS"; older rows may use a space separator
    return datetime.fromisoformat(ts.replace(" ", "T"))


def add_days(start: date, days: int) -> date:
    return start + timedelta(days=days)


def calc_end_date(start_date_iso: str, plan_days: int) -> str:
    """Plan end date: start date plus `plan_days` calendar days."""
    return add_days(parse_iso(start_date_iso), int(plan_days)).isoformat()


def parse_amount(value, field: str = "Amount", allow_zero: bool = True) -> float:
    """
    Read a money amount from form input. Blank counts as zero.
    Raises ValidationError for non-numeric or negative input.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        amount = 0.0
    else:
        try:
            amount = float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{field} must be numeric.") from None
    if not math.isfinite(amount):
        raise ValidationError(f"{field} must be numeric.")
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative.")
    if not allow_zero and amount == 0:
        raise ValidationError(f"{field} must be > 0.")
    return amount


def format_money(amount: float) -> str:
    if float(amount).is_integer():
        return f"{config.CURRENCY} {int(amount):,}"
    return f"{config.CURRENCY} {amount:,.2f}"


def validate_student_inputs(full_name: str, phone: str, email: str | None, status: str, enrollment_date: str) -> list[str]:
    errors: list[str] = []
    if not (full_name or "").strip():
        errors.append("Full name is required.")
    if not (phone or "").strip():
        errors.append("Phone is required.")
    elif not PHONE_RE.fullmatch(phone.strip()):
        errors.append("Phone must contain only digits, spaces, '+' or '-'.")
    if email and email.strip() and "@" not in email:
        errors.append("Email address is not valid.")
    if status not in STUDENT_STATUSES:
        errors.append(f"Status must be one of: {', '.join(STUDENT_STATUSES)}.")
    try:
        parse_iso(enrollment_date)
    except (TypeError, ValueError):
        errors.append("Enrollment date must be a valid ISO date (YYYY-MM-DD).")
    return errors


def validate_instructor_inputs(full_name: str, phone: str, email: str | None, specialization, status: str) -> list[str]:
    errors: list[str] = []
    if not (full_name or "").strip():
        errors.append("Full name is required.")
    if not (phone or "").strip():
        errors.append("Phone is required.")
    if email and email.strip() and "@" not in email:
        errors.append("Email address is not valid.")
    unknown = [s for s in (specialization or []) if s not in COURSES]
    if unknown:
        errors.append(f"Unknown specialization: {', '.join(unknown)}.")
    if status not in INSTRUCTOR_STATUSES:
        errors.append(f"Status must be one of: {', '.join(INSTRUCTOR_STATUSES)}.")
    return errors


def validate_lesson_slot(lesson_date: str, lesson_time: str) -> list[str]:
    errors: list[str] = []
    try:
        parse_iso(lesson_date)
    except (TypeError, ValueError):
        errors.append("Lesson date must be a valid ISO date (YYYY-MM-DD).")
    if not lesson_time or not TIME_RE.fullmatch(lesson_time):
        errors.append("Lesson time must be HH:MM (24h).")
    return errors


def rows_to_csv_bytes(rows) -> bytes:
    df = pd.DataFrame([dict(r) for r in rows])
    return df.to_csv(index=False).encode("utf-8")


def insert_sample_data() -> None:
    """
    Insert 3 students with enrollments, payments and a check-in
    (adds new rows each time it runs).
    """
    today = date.today()

    students = [
        {"full_name": "Aarav Sharma", "phone": "9800000001", "email": None, "status": "active",
         "enrollment_date": (today - timedelta(days=6)).isoformat()},
        {"full_name": "Sita Karki", "phone": "9800000002", "email": "sita@example.com", "status": "active",
         "enrollment_date": (today - timedelta(days=14)).isoformat()},
        {"full_name": "Bikash Rai", "phone": "9800000003", "email": None, "status": "active",
         "enrollment_date": today.isoformat()},
    ]
    ids = db.insert("students", students)

    # Student 1: car plan ending tomorrow, half paid (shows up as due soon)
    s1_start = (today - timedelta(days=6)).isoformat()
    # Student 2: car and motorcycle, fully paid with a discount
    s2_start = (today - timedelta(days=14)).isoformat()
    enrollments = [
        {"student_id": ids[0], "license_type": "car", "session_time": "1hr", "payment_plan": 7,
         "total_amount": 5000, "start_date": s1_start, "end_date": calc_end_date(s1_start, 7)},
        {"student_id": ids[1], "license_type": "car", "session_time": "30min", "payment_plan": 15,
         "total_amount": 5500, "start_date": s2_start, "end_date": calc_end_date(s2_start, 15)},
        {"student_id": ids[1], "license_type": "bike", "session_time": "30min", "payment_plan": 15,
         "total_amount": 3500, "start_date": s2_start, "end_date": calc_end_date(s2_start, 15)},
        {"student_id": ids[2], "license_type": "bike", "session_time": "1hr", "payment_plan": 1,
         "total_amount": 500, "start_date": today.isoformat(), "end_date": calc_end_date(today.isoformat(), 1)},
    ]
    db.insert("enrollments", enrollments)

    db.insert(
        "transactions",
        [
            {"student_id": ids[0], "amount": 2500, "payment_method": "cash", "payment_type": "tuition",
             "status": "completed", "kind": "payment", "description": "Sample payment"},
            {"student_id": ids[1], "amount": 8000, "payment_method": "qr", "payment_type": "tuition",
             "status": "completed", "kind": "payment", "description": "Paid in full"},
            {"student_id": ids[1], "amount": 1000, "payment_method": "discount", "payment_type": "discount",
             "status": "completed", "kind": "discount", "description": "Discount: two courses"},
        ],
    )

    db.insert(
        "attendance",
        [
            {"student_id": ids[0], "lesson_date": today.isoformat(), "lesson_time": "09:00",
             "lesson_type": "car", "duration_hours": 1, "status": "completed"},
            {"student_id": ids[1], "lesson_date": today.isoformat(), "lesson_time": "10:30",
             "lesson_type": "bike", "duration_hours": 0.5, "status": "completed"},
        ],
    )
