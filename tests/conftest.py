from __future__ import annotations

import pytest

import db
import students
from models import Enrollment, Transaction


@pytest.fixture(autouse=True)
def fresh_db(tmp_path, monkeypatch):
    monkeypatch.setattr(db, "DB_FILE", tmp_path / "test.db")
    db.init_db()
    yield tmp_path / "test.db"


@pytest.fixture
def student():
    return students.create_student("Ram Thapa", "9811111111", enrollment_date="2024-03-01")


@pytest.fixture
def add_enrollment():
    def _add(student_id, license_type="car", total_amount=1000, end_date="2024-03-08", status="active", plan=7):
        [eid] = db.insert(
            "enrollments",
            [
                {
                    "student_id": student_id,
                    "license_type": license_type,
                    "session_time": "1hr",
                    "payment_plan": plan,
                    "total_amount": total_amount,
                    "start_date": "2024-03-01",
                    "end_date": end_date,
                    "status": status,
                }
            ],
        )
        return eid

    return _add


class FakeStore:
    def __init__(self, data=None):
        self.data = dict(data or {})

    def get_setting(self, key, default=None):
        return self.data.get(key, default)

    def set_setting(self, key, value):
        self.data[key] = value


def enrollment(student_id=1, license_type="car", total_amount=1000.0, end_date="2024-03-08", status="active", plan=7):
    return Enrollment(
        id=None,
        student_id=student_id,
        license_type=license_type,
        session_time="1hr",
        payment_plan=plan,
        total_amount=total_amount,
        start_date="2024-03-01",
        end_date=end_date,
        status=status,
    )


def txn(student_id=1, amount=100.0, kind="payment", status="completed", date="2024-03-05T10:00:00", description=None):
    return Transaction(
        id=None,
        student_id=student_id,
        amount=amount,
        payment_method="discount" if kind == "discount" else "cash",
        payment_type="discount" if kind == "discount" else "tuition",
        status=status,
        kind=kind,
        transaction_date=date,
        description=description,
    )
