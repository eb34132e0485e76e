"""
instructors.py
Instructor records (independent of billing).
"""

from __future__ import annotations

import logging

import db
import utils
from errors import ValidationError
from models import Instructor

logger = logging.getLogger(__name__)


def _clean(full_name, phone, email, license_number, specialization, status) -> dict:
    specialization = list(specialization or [])
    errors = utils.validate_instructor_inputs(full_name, phone, email, specialization, status)
    if errors:
        raise ValidationError(errors)
    return {
        "full_name": full_name.strip(),
        "phone": phone.strip(),
        "email": (email or "").strip() or None,
        "license_number": (license_number or "").strip() or None,
        "specialization": ",".join(dict.fromkeys(specialization)),
        "status": status,
    }


def create_instructor(
    full_name: str,
    phone: str,
    email: str | None = None,
    license_number: str | None = None,
    specialization=(),
    status: str = "active",
) -> Instructor:
    values = _clean(full_name, phone, email, license_number, specialization, status)
    [instructor_id] = db.insert("instructors", [values])
    logger.info("Instructor %s added (%s)", instructor_id, values["full_name"])
    return Instructor.from_row({"id": instructor_id, **values})


def update_instructor(
    instructor_id: int,
    full_name: str,
    phone: str,
    email: str | None,
    license_number: str | None,
    specialization,
    status: str,
) -> Instructor:
    values = _clean(full_name, phone, email, license_number, specialization, status)
    if not db.update("instructors", instructor_id, values):
        raise ValidationError("Instructor not found.")
    return Instructor.from_row({"id": instructor_id, **values})


def delete_instructor(instructor_id: int) -> None:
    db.delete("instructors", eq={"id": instructor_id})
    logger.info("Instructor %s deleted", instructor_id)


def list_instructors(status: str | None = None) -> list[Instructor]:
    eq = {"status": status} if status else None
    return [Instructor.from_row(r) for r in db.select("instructors", eq=eq, order="full_name")]
