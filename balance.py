"""
balance.py
Per-student balance: what the enrollments cost vs. what was paid or discounted.
Pure functions over already-fetched rows; recompute after every write.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable

from models import Enrollment, Transaction


@dataclass(frozen=True)
class Balance:
    total_owed: float
    total_paid: float
    total_discount: float

    @property
    def remaining_signed(self) -> float:
        # Negative means overpaid
        return self.total_owed - self.total_paid - self.total_discount

    @property
    def remaining(self) -> float:
        return max(0.0, self.remaining_signed)

    @property
    def is_fully_paid(self) -> bool:
        return self.remaining_signed <= 0


ZERO_BALANCE = Balance(0.0, 0.0, 0.0)


def counts_as_payment(t: Transaction) -> bool:
    return t.status == "completed" and not t.is_discount


def compute_balance(enrollments: Iterable[Enrollment], transactions: Iterable[Transaction]) -> Balance:
    transactions = list(transactions)
    return Balance(
        total_owed=sum(e.total_amount for e in enrollments),
        total_paid=sum(t.amount for t in transactions if counts_as_payment(t)),
        total_discount=sum(t.amount for t in transactions if t.is_discount),
    )


def balances_by_student(
    enrollments: Iterable[Enrollment], transactions: Iterable[Transaction]
) -> dict[int, Balance]:
    """Balance for every student that has at least one enrollment or transaction."""
    e_by_student: dict[int, list[Enrollment]] = defaultdict(list)
    t_by_student: dict[int, list[Transaction]] = defaultdict(list)
    for e in enrollments:
        e_by_student[e.student_id].append(e)
    for t in transactions:
        t_by_student[t.student_id].append(t)
    return {
        sid: compute_balance(e_by_student.get(sid, []), t_by_student.get(sid, []))
        for sid in set(e_by_student) | set(t_by_student)
    }
