"""
models.py
Lightweight domain helpers (enumerations, dataclasses).
"""

from __future__ import annotations

from dataclasses import dataclass, field

# Courses offered, as shown to the user and used as pricing table keys
COURSES = ("motorcycle", "car")
SESSION_TIMES = ("30min", "1hr")
PLAN_DAYS = (1, 7, 15, 30)

# Enrollments and attendance store the course under a shorter name
LICENSE_TYPE_FOR_COURSE = {
    "motorcycle": "bike",
    "car": "car",
}
COURSE_FOR_LICENSE_TYPE = {v: k for k, v in LICENSE_TYPE_FOR_COURSE.items()}
LICENSE_TYPES = tuple(LICENSE_TYPE_FOR_COURSE.values())
LICENSE_LABELS = {
    "bike": "Motorcycle",
    "car": "Car",
}
COURSE_LABELS = {
    "motorcycle": "Motorcycle",
    "car": "Car",
}
SESSION_TIME_LABELS = {
    "30min": "30 minutes",
    "1hr": "1 hour",
}

STUDENT_STATUSES = ("active", "completed", "dropped")
ENROLLMENT_STATUSES = ("active", "completed", "cancelled")
INSTRUCTOR_STATUSES = ("active", "inactive")

ATTENDANCE_STATUSES = ("scheduled", "completed", "cancelled", "no-show")

PAYMENT_METHODS = ("cash", "qr", "card", "bank_transfer", "upi")
DISCOUNT_METHOD = "discount"
PAYMENT_TYPES = ("enrollment_fee", "tuition", "discount", "other")

# Explicit ledger flag; replaces guessing from payment_type / description
KIND_PAYMENT = "payment"
KIND_DISCOUNT = "discount"
DISCOUNT_DESCRIPTION_PREFIX = "Discount:"


def _row_dict(row) -> dict:
    return row if isinstance(row, dict) else dict(row)


@dataclass(frozen=True)
class Student:
    id: int | None
    full_name: str
    phone: str
    email: str | None
    status: str  # active/completed/dropped
    enrollment_date: str

    @classmethod
    def from_row(cls, row) -> "Student":
        r = _row_dict(row)
        return cls(
            id=r.get("id"),
            full_name=r["full_name"],
            phone=r["phone"],
            email=r.get("email"),
            status=r.get("status", "active"),
            enrollment_date=r["enrollment_date"],
        )

    @property
    def display_name(self) -> str:
        return f"{self.full_name} ({self.phone})"


@dataclass(frozen=True)
class Enrollment:
    id: int | None
    student_id: int
    license_type: str  # bike/car
    session_time: str
    payment_plan: int
    total_amount: float
    start_date: str
    end_date: str
    status: str = "active"

    @classmethod
    def from_row(cls, row) -> "Enrollment":
        r = _row_dict(row)
        return cls(
            id=r.get("id"),
            student_id=r["student_id"],
            license_type=r["license_type"],
            session_time=r.get("session_time") or "",
            payment_plan=int(r["payment_plan"]),
            total_amount=float(r["total_amount"]),
            start_date=r["start_date"],
            end_date=r["end_date"],
            status=r.get("status", "active"),
        )

    @property
    def course(self) -> str:
        return COURSE_FOR_LICENSE_TYPE.get(self.license_type, self.license_type)


@dataclass(frozen=True)
class AttendanceRecord:
    id: int | None
    student_id: int
    lesson_date: str
    lesson_time: str
    lesson_type: str  # bike/car
    duration_hours: float
    status: str
    notes: str | None = None

    @classmethod
    def from_row(cls, row) -> "AttendanceRecord":
        r = _row_dict(row)
        return cls(
            id=r.get("id"),
            student_id=r["student_id"],
            lesson_date=r["lesson_date"],
            lesson_time=r["lesson_time"],
            lesson_type=r["lesson_type"],
            duration_hours=float(r.get("duration_hours") or 1),
            status=r.get("status", "completed"),
            notes=r.get("notes"),
        )


@dataclass(frozen=True)
class Transaction:
    id: int | None
    student_id: int
    amount: float
    payment_method: str
    payment_type: str
    status: str
    kind: str  # payment/discount
    transaction_date: str
    description: str | None = None

    @classmethod
    def from_row(cls, row) -> "Transaction":
        r = _row_dict(row)
        return cls(
            id=r.get("id"),
            student_id=r["student_id"],
            amount=float(r["amount"]),
            payment_method=r["payment_method"],
            payment_type=r["payment_type"],
            status=r.get("status", "completed"),
            kind=r.get("kind") or legacy_kind(r.get("payment_type"), r.get("description")),
            transaction_date=r.get("transaction_date") or "",
            description=r.get("description"),
        )

    @property
    def is_discount(self) -> bool:
        return self.kind == KIND_DISCOUNT


@dataclass(frozen=True)
class Instructor:
    id: int | None
    full_name: str
    phone: str
    email: str | None = None
    license_number: str | None = None
    specialization: tuple[str, ...] = field(default_factory=tuple)
    status: str = "active"

    @classmethod
    def from_row(cls, row) -> "Instructor":
        r = _row_dict(row)
        tags = r.get("specialization") or ""
        if isinstance(tags, str):
            tags = [t for t in tags.split(",") if t]
        return cls(
            id=r.get("id"),
            full_name=r["full_name"],
            phone=r["phone"],
            email=r.get("email"),
            license_number=r.get("license_number"),
            specialization=tuple(tags),
            status=r.get("status", "active"),
        )


def legacy_kind(payment_type: str | None, description: str | None) -> str:
    """
    Classify a ledger row written before the explicit `kind` column existed.
    Both historical conventions mark a discount.
    """
    if payment_type == "discount":
        return KIND_DISCOUNT
    if description and description.startswith(DISCOUNT_DESCRIPTION_PREFIX):
        return KIND_DISCOUNT
    return KIND_PAYMENT
