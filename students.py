"""
students.py
Student records: create, edit, delete, search.
"""

from __future__ import annotations

import logging

import db
import utils
from errors import ValidationError
from models import Student

logger = logging.getLogger(__name__)


def _clean(full_name: str, phone: str, email: str | None, status: str, enrollment_date: str | None) -> dict:
    enrollment_date = enrollment_date or utils.today_iso()
    errors = utils.validate_student_inputs(full_name, phone, email, status, enrollment_date)
    if errors:
        raise ValidationError(errors)
    return {
        "full_name": full_name.strip(),
        "phone": phone.strip(),
        "email": (email or "").strip() or None,
        "status": status,
        "enrollment_date": enrollment_date,
    }


def create_student(
    full_name: str,
    phone: str,
    email: str | None = None,
    status: str = "active",
    enrollment_date: str | None = None,
) -> Student:
    values = _clean(full_name, phone, email, status, enrollment_date)
    [student_id] = db.insert("students", [values])
    logger.info("Student %s added (%s)", student_id, values["full_name"])
    return Student(id=student_id, **values)


def update_student(
    student_id: int,
    full_name: str,
    phone: str,
    email: str | None,
    status: str,
    enrollment_date: str,
) -> Student:
    values = _clean(full_name, phone, email, status, enrollment_date)
    if not db.update("students", student_id, values):
        raise ValidationError("Student not found.")
    return Student(id=student_id, **values)


def delete_student(student_id: int) -> None:
    # Enrollments, attendance and transactions go with it (ON DELETE CASCADE)
    db.delete("students", eq={"id": student_id})
    logger.info("Student %s deleted", student_id)


def get_student(student_id: int) -> Student | None:
    row = db.get_by_id("students", student_id)
    return Student.from_row(row) if row else None


def require_student(student_id: int) -> Student:
    student = get_student(student_id)
    if student is None:
        raise ValidationError("Student not found.")
    return student


def list_students(status: str | None = None) -> list[Student]:
    eq = {"status": status} if status else None
    rows = db.select("students", eq=eq, order="created_at", ascending=False)
    return [Student.from_row(r) for r in rows]


def list_active_students() -> list[Student]:
    rows = db.select("students", eq={"status": "active"}, order="full_name")
    return [Student.from_row(r) for r in rows]


def search_students(term: str, students: list[Student] | None = None) -> list[Student]:
    """Case-insensitive match on name or email; phone matches as typed."""
    if students is None:
        students = list_students()
    term = (term or "").strip()
    if not term:
        return students
    needle = term.lower()
    return [
        s for s in students
        if needle in s.full_name.lower()
        or term in s.phone
        or (s.email and needle in s.email.lower())
    ]


def students_by_id(ids=None) -> dict[int, Student]:
    rows = db.select("students", in_={"id": ids}) if ids is not None else db.select("students")
    return {r["id"]: Student.from_row(r) for r in rows}
