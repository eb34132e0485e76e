"""
dashboard.py
Dashboard numbers: revenue by course, monthly revenue, due-soon and discount lists.
Everything is recomputed from a fresh read on each load.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta

import pandas as pd

import config
import db
import utils
from balance import Balance, balances_by_student, counts_as_payment
from models import Enrollment, Student, Transaction
from students import students_by_id


@dataclass(frozen=True)
class RevenueBreakdown:
    car: float = 0.0
    motorcycle: float = 0.0
    # Payments from students with no enrollment to attribute them to
    unattributed: float = 0.0

    @property
    def total(self) -> float:
        return self.car + self.motorcycle + self.unattributed


@dataclass(frozen=True)
class DueSoonRow:
    enrollment: Enrollment
    student: Student | None
    remaining: float

    @property
    def days_left(self) -> int:
        return (utils.parse_iso(self.enrollment.end_date) - date.today()).days


@dataclass
class DashboardData:
    total_students: int
    active_students: int
    todays_lessons: int
    revenue: RevenueBreakdown
    monthly_revenue: RevenueBreakdown
    due_soon: list[DueSoonRow] = field(default_factory=list)
    discounts: list[dict] = field(default_factory=list)
    revenue_by_month: pd.DataFrame | None = None


def _license_types_by_student(enrollments) -> dict[int, set[str]]:
    types: dict[int, set[str]] = defaultdict(set)
    for e in enrollments:
        types[e.student_id].add(e.license_type)
    return types


def attribute_revenue(transactions, enrollments) -> RevenueBreakdown:
    """
    Transactions aren't tied to an enrollment, so a payment goes to the
    student's course type; a student on both courses splits it 50/50.
    """
    types = _license_types_by_student(enrollments)
    car = motorcycle = unattributed = 0.0
    for t in transactions:
        if not counts_as_payment(t):
            continue
        held = types.get(t.student_id, set())
        has_car, has_bike = "car" in held, "bike" in held
        if has_car and has_bike:
            car += t.amount / 2
            motorcycle += t.amount / 2
        elif has_car:
            car += t.amount
        elif has_bike:
            motorcycle += t.amount
        else:
            unattributed += t.amount
    return RevenueBreakdown(car=car, motorcycle=motorcycle, unattributed=unattributed)


def month_start(today: date | None = None) -> date:
    return (today or date.today()).replace(day=1)


def in_current_month(t: Transaction, today: date | None = None) -> bool:
    if not t.transaction_date:
        return False
    return utils.parse_timestamp(t.transaction_date).date() >= month_start(today)


def monthly_revenue(transactions, enrollments, today: date | None = None) -> RevenueBreakdown:
    return attribute_revenue([t for t in transactions if in_current_month(t, today)], enrollments)


def due_soon(
    enrollments,
    transactions,
    students: dict[int, Student],
    today: date | None = None,
    window_days: int | None = None,
    balances: dict[int, Balance] | None = None,
) -> list[DueSoonRow]:
    """
    Active enrollments ending within the window (or already past) whose
    student still owes money. One row per enrollment, soonest first.
    """
    today = today or date.today()
    window = config.DUE_SOON_DAYS if window_days is None else window_days
    cutoff = today + timedelta(days=window)
    enrollments = list(enrollments)
    if balances is None:
        balances = balances_by_student(enrollments, transactions)

    rows = []
    for e in enrollments:
        if e.status != "active" or utils.parse_iso(e.end_date) > cutoff:
            continue
        balance = balances.get(e.student_id)
        if balance is None or balance.remaining_signed <= 0:
            continue
        rows.append(DueSoonRow(enrollment=e, student=students.get(e.student_id), remaining=balance.remaining))
    rows.sort(key=lambda r: r.enrollment.end_date)
    return rows


def discount_list(transactions, students: dict[int, Student]) -> list[dict]:
    rows = []
    for t in transactions:
        if not t.is_discount:
            continue
        s = students.get(t.student_id)
        rows.append(
            {
                "id": t.id,
                "student_id": t.student_id,
                "full_name": s.full_name if s else "Unknown",
                "phone": s.phone if s else "",
                "amount": t.amount,
                "description": t.description,
                "transaction_date": t.transaction_date,
            }
        )
    return rows


def revenue_summary_by_month(transactions) -> pd.DataFrame:
    df = pd.DataFrame(
        [{"transaction_date": t.transaction_date, "amount": t.amount} for t in transactions if counts_as_payment(t)]
    )
    if df.empty:
        return pd.DataFrame(columns=["month", "revenue"])
    df["month"] = df["transaction_date"].str.slice(0, 7)
    out = df.groupby("month", as_index=False)["amount"].sum().rename(columns={"amount": "revenue"})
    return out.sort_values("month", ascending=False).reset_index(drop=True)


def load_dashboard(today: date | None = None) -> DashboardData:
    today = today or date.today()
    students = students_by_id()
    enrollments = [Enrollment.from_row(r) for r in db.select("enrollments")]
    transactions = [
        Transaction.from_row(r) for r in db.select("transactions", order="transaction_date", ascending=False)
    ]
    balances = balances_by_student(enrollments, transactions)

    return DashboardData(
        total_students=len(students),
        active_students=sum(1 for s in students.values() if s.status == "active"),
        todays_lessons=db.count("attendance", eq={"lesson_date": today.isoformat()}),
        revenue=attribute_revenue(transactions, enrollments),
        monthly_revenue=monthly_revenue(transactions, enrollments, today),
        due_soon=due_soon(enrollments, transactions, students, today=today, balances=balances),
        discounts=discount_list(transactions, students),
        revenue_by_month=revenue_summary_by_month(transactions),
    )
