"""
attendance.py
Lesson check-ins, scheduled lessons, daily roster and lesson counts per plan.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import db
import students
import utils
from errors import ValidationError
from models import ATTENDANCE_STATUSES, LICENSE_TYPES, AttendanceRecord, Enrollment

logger = logging.getLogger(__name__)

# A completed lesson on the same day blocks another quick check-in
BLOCKING_STATUSES = ("completed",)


@dataclass(frozen=True)
class LessonProgress:
    lesson_type: str
    plan_lessons: int
    days_attended: int

    @property
    def remaining_lessons(self) -> int:
        return remaining_lessons(self.plan_lessons, self.days_attended)


def remaining_lessons(plan_days: int, days_attended: int) -> int:
    return max(0, int(plan_days) - int(days_attended))


def _check_lesson_type(lesson_type: str) -> None:
    if lesson_type not in LICENSE_TYPES:
        raise ValidationError(f"Lesson type must be one of: {', '.join(LICENSE_TYPES)}.")


def already_checked_in(student_id: int, lesson_date: str) -> bool:
    return db.count(
        "attendance",
        eq={"student_id": student_id, "lesson_date": lesson_date},
        in_={"status": BLOCKING_STATUSES},
    ) > 0


def check_in(
    student_id: int,
    lesson_type: str,
    lesson_date: str | None = None,
    lesson_time: str | None = None,
    duration_hours: float = 1,
) -> AttendanceRecord:
    """
    Quick check-in: a completed lesson for today (or the given date) at the
    current time. One check-in per student per day.
    """
    if not student_id:
        raise ValidationError("Please select a student first.")
    _check_lesson_type(lesson_type)
    lesson_date = lesson_date or utils.today_iso()
    lesson_time = lesson_time or utils.now_hhmm()
    errors = utils.validate_lesson_slot(lesson_date, lesson_time)
    if errors:
        raise ValidationError(errors)

    student = students.require_student(student_id)
    if already_checked_in(student_id, lesson_date):
        raise ValidationError(f"{student.full_name} has already been checked in on {lesson_date}.")

    values = {
        "student_id": student_id,
        "lesson_date": lesson_date,
        "lesson_time": lesson_time,
        "lesson_type": lesson_type,
        "duration_hours": duration_hours,
        "status": "completed",
        "notes": None,
    }
    [record_id] = db.insert("attendance", [values])
    logger.info("Check-in: student %s, %s lesson on %s %s", student_id, lesson_type, lesson_date, lesson_time)
    return AttendanceRecord(id=record_id, **values)


def schedule_lesson(
    student_id: int,
    lesson_type: str,
    lesson_date: str,
    lesson_time: str,
    duration_hours: float = 1,
    notes: str | None = None,
    status: str = "scheduled",
) -> AttendanceRecord:
    """Full scheduling form: any date/time/duration, stored as scheduled by default."""
    errors: list[str] = []
    if not student_id:
        errors.append("Student is required.")
    if lesson_type not in LICENSE_TYPES:
        errors.append(f"Lesson type must be one of: {', '.join(LICENSE_TYPES)}.")
    if status not in ATTENDANCE_STATUSES:
        errors.append(f"Status must be one of: {', '.join(ATTENDANCE_STATUSES)}.")
    errors.extend(utils.validate_lesson_slot(lesson_date, lesson_time))
    try:
        duration = float(duration_hours)
        if duration <= 0:
            errors.append("Duration must be > 0.")
    except (TypeError, ValueError):
        errors.append("Duration must be numeric.")
    if errors:
        raise ValidationError(errors)

    students.require_student(student_id)
    values = {
        "student_id": student_id,
        "lesson_date": lesson_date,
        "lesson_time": lesson_time,
        "lesson_type": lesson_type,
        "duration_hours": duration,
        "status": status,
        "notes": (notes or "").strip() or None,
    }
    [record_id] = db.insert("attendance", [values])
    logger.info("Lesson %s scheduled for student %s on %s %s", record_id, student_id, lesson_date, lesson_time)
    return AttendanceRecord(id=record_id, **values)


def set_status(record_id: int, status: str) -> None:
    if status not in ATTENDANCE_STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(ATTENDANCE_STATUSES)}.")
    row = db.get_by_id("attendance", record_id)
    if row is None:
        raise ValidationError("Attendance record not found.")
    if status in BLOCKING_STATUSES and row["status"] not in BLOCKING_STATUSES:
        if already_checked_in(row["student_id"], row["lesson_date"]):
            raise ValidationError(f"Student already has a completed lesson on {row['lesson_date']}.")
    db.update("attendance", record_id, {"status": status})
    logger.info("Attendance record %s marked %s", record_id, status)


def delete_attendance(record_id: int) -> None:
    # Hard delete, no audit trail
    db.delete("attendance", eq={"id": record_id})
    logger.info("Attendance record %s deleted", record_id)


def list_attendance(student_id: int) -> list[AttendanceRecord]:
    rows = db.select("attendance", eq={"student_id": student_id}, order="lesson_date", ascending=False)
    return [AttendanceRecord.from_row(r) for r in rows]


def count_completed(records, lesson_type: str) -> int:
    return sum(1 for r in records if r.lesson_type == lesson_type and r.status == "completed")


def days_attended(student_id: int, lesson_type: str) -> int:
    _check_lesson_type(lesson_type)
    return db.count(
        "attendance", eq={"student_id": student_id, "lesson_type": lesson_type, "status": "completed"}
    )


def lesson_progress(enrollments: list[Enrollment], records: list[AttendanceRecord]) -> list[LessonProgress]:
    """Plan lessons vs. completed lessons, per lesson type the student is enrolled in (active only)."""
    progress = []
    for lesson_type in LICENSE_TYPES:
        plans = [e for e in enrollments if e.license_type == lesson_type and e.status == "active"]
        if not plans:
            continue
        progress.append(
            LessonProgress(
                lesson_type=lesson_type,
                plan_lessons=sum(e.payment_plan for e in plans),
                days_attended=count_completed(records, lesson_type),
            )
        )
    return progress


def roster(lesson_date: str | None = None) -> dict[str, list[dict]]:
    """The day's lessons with student name/phone, split by lesson type, latest time first."""
    lesson_date = lesson_date or utils.today_iso()
    rows = db.fetch_all(
        """
        SELECT a.*, s.full_name, s.phone
        FROM attendance a
        LEFT JOIN students s ON s.id = a.student_id
        WHERE a.lesson_date = ?
        ORDER BY a.lesson_time DESC, a.id DESC
        """,
        (lesson_date,),
    )
    by_type: dict[str, list[dict]] = {t: [] for t in LICENSE_TYPES}
    for r in rows:
        by_type.setdefault(r["lesson_type"], []).append(dict(r))
    return by_type
