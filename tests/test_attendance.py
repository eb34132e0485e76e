import pytest

import attendance
import db
import students
from errors import ValidationError
from conftest import enrollment


def test_check_in_defaults(student):
    record = attendance.check_in(student.id, "car")
    assert record.status == "completed"
    assert record.duration_hours == 1
    assert len(record.lesson_time) == 5
    assert attendance.days_attended(student.id, "car") == 1
    assert attendance.days_attended(student.id, "bike") == 0


def test_second_check_in_same_day_rejected(student):
    attendance.check_in(student.id, "car", lesson_date="2024-03-04", lesson_time="09:00")
    with pytest.raises(ValidationError, match="already been checked in"):
        attendance.check_in(student.id, "bike", lesson_date="2024-03-04", lesson_time="15:00")
    assert db.count("attendance") == 1


def test_check_in_on_another_day_is_fine(student):
    attendance.check_in(student.id, "car", lesson_date="2024-03-04", lesson_time="09:00")
    attendance.check_in(student.id, "car", lesson_date="2024-03-05", lesson_time="09:00")
    assert attendance.days_attended(student.id, "car") == 2


def test_cancelled_lesson_does_not_block_check_in(student):
    first = attendance.check_in(student.id, "car", lesson_date="2024-03-04", lesson_time="09:00")
    attendance.set_status(first.id, "cancelled")
    attendance.check_in(student.id, "car", lesson_date="2024-03-04", lesson_time="11:00")
    assert attendance.days_attended(student.id, "car") == 1


def test_completing_a_scheduled_lesson_after_check_in_is_rejected(student):
    planned = attendance.schedule_lesson(student.id, "car", "2024-03-04", "16:00")
    attendance.check_in(student.id, "car", lesson_date="2024-03-04", lesson_time="09:00")
    with pytest.raises(ValidationError, match="already has a completed lesson"):
        attendance.set_status(planned.id, "completed")
    assert attendance.days_attended(student.id, "car") == 1
    # Re-saving the same status is not a second check-in
    [done] = [r for r in attendance.list_attendance(student.id) if r.status == "completed"]
    attendance.set_status(done.id, "completed")


def test_check_in_validation(student):
    with pytest.raises(ValidationError):
        attendance.check_in(student.id, "truck")
    with pytest.raises(ValidationError):
        attendance.check_in(None, "car")
    with pytest.raises(ValidationError):
        attendance.check_in(student.id, "car", lesson_date="04/03/2024", lesson_time="09:00")
    with pytest.raises(ValidationError):
        attendance.check_in(4321, "car")


def test_schedule_lesson(student):
    record = attendance.schedule_lesson(
        student.id, "bike", "2024-03-10", "14:30", duration_hours="1.5", notes="  highway practice "
    )
    assert record.status == "scheduled"
    assert record.duration_hours == 1.5
    assert record.notes == "highway practice"
    # Scheduled lessons aren't attended lessons yet
    assert attendance.days_attended(student.id, "bike") == 0

    attendance.set_status(record.id, "completed")
    assert attendance.days_attended(student.id, "bike") == 1


def test_schedule_lesson_collects_errors(student):
    with pytest.raises(ValidationError) as exc:
        attendance.schedule_lesson(student.id, "boat", "2024-13-01", "25:00", duration_hours=0)
    assert len(exc.value.messages) == 4


def test_set_status_rejects_unknown(student):
    record = attendance.check_in(student.id, "car")
    with pytest.raises(ValidationError):
        attendance.set_status(record.id, "late")


def test_remaining_lessons():
    assert attendance.remaining_lessons(7, 3) == 4
    assert attendance.remaining_lessons(1, 3) == 0


def test_lesson_progress(student):
    records = [
        attendance.check_in(student.id, "car", lesson_date=f"2024-03-0{d}", lesson_time="09:00") for d in (1, 2, 3)
    ]
    plans = [
        enrollment(student_id=student.id, license_type="car", plan=7),
        enrollment(student_id=student.id, license_type="car", plan=1, status="completed"),
        enrollment(student_id=student.id, license_type="bike", plan=15),
    ]
    progress = {p.lesson_type: p for p in attendance.lesson_progress(plans, records)}
    assert progress["car"].plan_lessons == 7
    assert progress["car"].days_attended == 3
    assert progress["car"].remaining_lessons == 4
    assert progress["bike"].remaining_lessons == 15


def test_roster_split_by_type(student):
    other = students.create_student("Gita Shrestha", "9822222222")
    attendance.check_in(student.id, "car", lesson_date="2024-03-04", lesson_time="09:00")
    attendance.check_in(other.id, "car", lesson_date="2024-03-04", lesson_time="11:00")
    attendance.schedule_lesson(other.id, "bike", "2024-03-04", "16:00")
    attendance.check_in(student.id, "bike", lesson_date="2024-03-05", lesson_time="09:00")

    roster = attendance.roster("2024-03-04")
    assert [r["full_name"] for r in roster["car"]] == ["Gita Shrestha", "Ram Thapa"]
    assert [r["lesson_time"] for r in roster["bike"]] == ["16:00"]


def test_delete_attendance(student):
    record = attendance.check_in(student.id, "car")
    attendance.delete_attendance(record.id)
    assert attendance.list_attendance(student.id) == []
