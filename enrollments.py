"""
enrollments.py
Enrollment creation (price from the pricing table, end date from the plan)
and the course -> session time -> plan selection steps behind the form.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable

import db
import utils
from errors import InvalidSelection, ValidationError
from models import (
    COURSES,
    ENROLLMENT_STATUSES,
    LICENSE_TYPE_FOR_COURSE,
    PLAN_DAYS,
    SESSION_TIMES,
    Enrollment,
)
from pricing import PricingTable

logger = logging.getLogger(__name__)


# ---------- Selection steps ----------
# Each step only exposes the next choice, so a plan can't be picked
# before a session time, and a price can't be quoted before a plan.

@dataclass(frozen=True)
class NoSelection:
    def choose_course(self, course: str) -> "CourseSelected":
        if course not in COURSES:
            raise InvalidSelection(f"Unknown course: {course!r}")
        return CourseSelected(course)


@dataclass(frozen=True)
class CourseSelected:
    course: str

    def choose_course(self, course: str) -> "CourseSelected":
        return NoSelection().choose_course(course)

    def choose_session_time(self, session_time: str) -> "SessionTimeSelected":
        if session_time not in SESSION_TIMES:
            raise InvalidSelection(f"Unknown session time: {session_time!r}")
        return SessionTimeSelected(self.course, session_time)


@dataclass(frozen=True)
class SessionTimeSelected:
    course: str
    session_time: str

    def choose_course(self, course: str) -> "CourseSelected":
        return NoSelection().choose_course(course)

    def choose_session_time(self, session_time: str) -> "SessionTimeSelected":
        return CourseSelected(self.course).choose_session_time(session_time)

    def choose_plan(self, plan_days) -> "PlanSelected":
        try:
            days = int(plan_days)
        except (TypeError, ValueError):
            raise InvalidSelection(f"Unknown payment plan: {plan_days!r}") from None
        if days not in PLAN_DAYS:
            raise InvalidSelection(f"Unknown payment plan: {plan_days!r}")
        return PlanSelected(self.course, self.session_time, days)


@dataclass(frozen=True)
class PlanSelected:
    course: str
    session_time: str
    plan_days: int

    def choose_course(self, course: str) -> "CourseSelected":
        return NoSelection().choose_course(course)

    def choose_session_time(self, session_time: str) -> "SessionTimeSelected":
        return CourseSelected(self.course).choose_session_time(session_time)

    def choose_plan(self, plan_days) -> "PlanSelected":
        return SessionTimeSelected(self.course, self.session_time).choose_plan(plan_days)

    def price(self, pricing: PricingTable) -> int:
        return pricing.get_price(self.course, self.session_time, self.plan_days)


def build_selection(course: str | None, session_time: str | None, plan_days) -> PlanSelected:
    """Walk the selection steps, collecting every missing field first."""
    missing = []
    if not course:
        missing.append("Course is required.")
    if not session_time:
        missing.append("Session time is required.")
    if plan_days in (None, ""):
        missing.append("Payment plan is required.")
    if missing:
        raise ValidationError(missing)
    return NoSelection().choose_course(course).choose_session_time(session_time).choose_plan(plan_days)


# ---------- Workflow ----------

def create_enrollment(
    student_id: int,
    course: str | None,
    session_time: str | None,
    plan_days,
    pricing: PricingTable,
    today: date | None = None,
    on_success: Callable[[Enrollment], None] | None = None,
) -> Enrollment:
    """
    Price the selection, set start = today and end = today + plan days,
    and store one enrollment row. The amount is fixed from here on.
    """
    if not student_id:
        raise ValidationError("Student is required.")
    selection = build_selection(course, session_time, plan_days)
    price = selection.price(pricing)

    start = (today or date.today()).isoformat()
    values = {
        "student_id": student_id,
        "license_type": LICENSE_TYPE_FOR_COURSE[selection.course],
        "session_time": selection.session_time,
        "payment_plan": selection.plan_days,
        "total_amount": price,
        "start_date": start,
        "end_date": utils.calc_end_date(start, selection.plan_days),
        "status": "active",
    }
    [enrollment_id] = db.insert("enrollments", [values])
    enrollment = Enrollment(id=enrollment_id, **values)
    logger.info(
        "Enrollment %s: student %s, %s %s %sd for %s",
        enrollment_id, student_id, selection.course, selection.session_time, selection.plan_days, price,
    )
    if on_success is not None:
        on_success(enrollment)
    return enrollment


def list_enrollments(student_id: int | None = None, status: str | None = None) -> list[Enrollment]:
    eq = {}
    if student_id is not None:
        eq["student_id"] = student_id
    if status:
        eq["status"] = status
    rows = db.select("enrollments", eq=eq or None, order="start_date", ascending=False)
    return [Enrollment.from_row(r) for r in rows]


def set_enrollment_status(enrollment_id: int, status: str) -> None:
    # Only the status is editable; the amount stays as created
    if status not in ENROLLMENT_STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(ENROLLMENT_STATUSES)}.")
    if not db.update("enrollments", enrollment_id, {"status": status}):
        raise ValidationError("Enrollment not found.")


def delete_enrollment(enrollment_id: int) -> None:
    db.delete("enrollments", eq={"id": enrollment_id})
    logger.info("Enrollment %s deleted", enrollment_id)
