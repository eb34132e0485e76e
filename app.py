"""
app.py
Streamlit point-of-sale for a driving school (students, enrollments, payments, attendance).
Run: streamlit run app.py
"""

from __future__ import annotations

import logging
import warnings
from datetime import date

import pandas as pd
import streamlit as st

import attendance
import config
import dashboard
import db
import enrollments
import instructors
import payments
import students
import utils
from balance import compute_balance
from errors import DriveTrackError, StaleDataWarning, ValidationError
from models import (
    ATTENDANCE_STATUSES,
    COURSE_LABELS,
    ENROLLMENT_STATUSES,
    COURSES,
    INSTRUCTOR_STATUSES,
    KIND_DISCOUNT,
    KIND_PAYMENT,
    LICENSE_LABELS,
    LICENSE_TYPES,
    PAYMENT_METHODS,
    PLAN_DAYS,
    SESSION_TIME_LABELS,
    SESSION_TIMES,
    STUDENT_STATUSES,
)
from pricing import PricingTable

st.set_page_config(page_title="DriveTrack POS", layout="wide")

logger = logging.getLogger(__name__)


def init_once():
    config.configure_logging()
    db.init_db()


def get_pricing() -> PricingTable:
    # One table per browser session, loaded from the settings store
    if "pricing" not in st.session_state:
        st.session_state.pricing = PricingTable.load(db)
    return st.session_state.pricing


def show_error(exc: DriveTrackError):
    if isinstance(exc, ValidationError):
        for msg in exc.messages:
            st.error(msg)
    else:
        st.error(str(exc))


def student_picker(label: str = "Student", active_only: bool = False, key: str | None = None, default_id=None):
    rows = students.list_active_students() if active_only else students.list_students()
    if not rows:
        st.info("No students yet. Add a student first.")
        return None
    search = st.text_input("Search (name/phone/email)", key=f"{key}_search" if key else None)
    rows = students.search_students(search, rows)
    if not rows:
        st.caption("No matching students.")
        return None
    options = {f"{s.full_name} ({s.phone}) - ID {s.id}": s for s in rows}
    ids = [s.id for s in options.values()]
    index = ids.index(default_id) if default_id in ids else 0
    chosen = st.selectbox(label, list(options.keys()), index=index, key=key)
    return options[chosen]


def money(amount) -> str:
    return utils.format_money(amount)


# ---------- Pages ----------

def dashboard_page():
    st.header("📊 Dashboard")

    data = dashboard.load_dashboard()

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Total students", data.total_students, f"{data.active_students} active", delta_color="off")
    c2.metric("Today's lessons", data.todays_lessons)
    c3.metric("Monthly revenue", money(data.monthly_revenue.total))
    c4.metric("All-time revenue", money(data.revenue.total))

    st.subheader("Revenue by course")
    r1, r2, r3, r4 = st.columns(4)
    r1.metric("Car (this month)", money(data.monthly_revenue.car))
    r2.metric("Motorcycle (this month)", money(data.monthly_revenue.motorcycle))
    r3.metric("Car (all time)", money(data.revenue.car))
    r4.metric("Motorcycle (all time)", money(data.revenue.motorcycle))

    st.divider()

    st.subheader(f"Due soon (ending within {config.DUE_SOON_DAYS} days, balance owing)")
    if data.due_soon:
        st.dataframe(
            pd.DataFrame(
                [
                    {
                        "student": r.student.full_name if r.student else "Unknown",
                        "phone": r.student.phone if r.student else "",
                        "course": LICENSE_LABELS.get(r.enrollment.license_type, r.enrollment.license_type),
                        "plan (days)": r.enrollment.payment_plan,
                        "end_date": r.enrollment.end_date,
                        "remaining": r.remaining,
                    }
                    for r in data.due_soon
                ]
            ),
            use_container_width=True,
            hide_index=True,
        )
    else:
        st.caption("Nothing due soon.")

    st.subheader("Discounts given")
    if data.discounts:
        for d in data.discounts:
            c1, c2 = st.columns([5, 1])
            c1.write(
                f"**{d['full_name']}** ({d['phone']}) - {money(d['amount'])} "
                f"on {d['transaction_date'][:10]} {d['description'] or ''}"
            )
            if c2.button("Delete", key=f"del_discount_{d['id']}"):
                try:
                    payments.delete_transaction(d["id"])
                except DriveTrackError as e:
                    show_error(e)
                else:
                    st.rerun()
    else:
        st.caption("No discounts recorded.")

    st.subheader("Revenue by month")
    st.dataframe(data.revenue_by_month, use_container_width=True, hide_index=True)


def student_form(existing=None):
    if existing:
        st.subheader(f"✏️ Edit Student (ID: {existing.id})")
    else:
        st.subheader("➕ Add Student")

    col1, col2 = st.columns(2)
    with col1:
        full_name = st.text_input("Full name", value=(existing.full_name if existing else ""))
        phone = st.text_input("Phone", value=(existing.phone if existing else ""))
        email = st.text_input("Email (optional)", value=((existing.email or "") if existing else ""))
    with col2:
        enrollment_date = st.date_input(
            "Enrollment date",
            value=(utils.parse_iso(existing.enrollment_date) if existing else date.today()),
        ).isoformat()
        status = st.selectbox(
            "Status",
            options=list(STUDENT_STATUSES),
            index=(STUDENT_STATUSES.index(existing.status) if existing else 0),
        )

    if st.button("Save", type="primary"):
        try:
            if existing:
                students.update_student(existing.id, full_name, phone, email, status, enrollment_date)
                st.session_state.edit_student_id = None
                st.success("Student updated.")
            else:
                students.create_student(full_name, phone, email, status, enrollment_date)
                st.success("Student added.")
        except DriveTrackError as e:
            show_error(e)
            return
        st.rerun()


def students_page():
    st.header("👥 Students")

    with st.sidebar:
        st.subheader("Search & Filters")
        search = st.text_input("Search (name/phone/email)")
        status_filter = st.selectbox("Status", ["All", *STUDENT_STATUSES])

    rows = students.list_students(None if status_filter == "All" else status_filter)
    rows = students.search_students(search, rows)
    types = {}
    for e in enrollments.list_enrollments():
        types.setdefault(e.student_id, set()).add(e.license_type)
    df = pd.DataFrame(
        [
            {
                "id": s.id,
                "full_name": s.full_name,
                "phone": s.phone,
                "email": s.email,
                "status": s.status,
                "enrollment_date": s.enrollment_date,
                "courses": payments.enrollment_type_label(types.get(s.id, ())),
            }
            for s in rows
        ],
        columns=["id", "full_name", "phone", "email", "status", "enrollment_date", "courses"],
    )
    st.dataframe(df, use_container_width=True, hide_index=True)

    st.divider()

    colA, colB = st.columns([1, 2])
    with colA:
        st.subheader("Select student")
        selected_id = st.selectbox("Student ID", options=["(none)"] + [str(s.id) for s in rows])

    with colB:
        if selected_id != "(none)":
            st.subheader("Student actions")
            c1, c2, c3 = st.columns(3)
            with c1:
                if st.button("Edit"):
                    st.session_state.edit_student_id = int(selected_id)
                    st.rerun()
            with c2:
                if st.button("Payments"):
                    st.session_state.payments_student_id = int(selected_id)
                    st.session_state.page = "Payments"
                    st.rerun()
            with c3:
                delete_confirm = st.checkbox("Confirm delete", value=False, key="del_confirm")
                if st.button("Delete", type="secondary", disabled=not delete_confirm):
                    try:
                        students.delete_student(int(selected_id))
                    except DriveTrackError as e:
                        show_error(e)
                    else:
                        st.success("Student deleted.")
                        st.rerun()

    st.divider()

    if st.session_state.get("edit_student_id"):
        existing = students.get_student(st.session_state.edit_student_id)
        if existing:
            student_form(existing=existing)
        if st.button("Cancel edit"):
            st.session_state.edit_student_id = None
            st.rerun()
    else:
        student_form(existing=None)

    st.divider()
    st.subheader("Export students to CSV")
    all_rows = db.select("students", order="id", ascending=False)
    if all_rows:
        st.download_button(
            "Download students.csv",
            data=utils.rows_to_csv_bytes(all_rows),
            file_name="students.csv",
            mime="text/csv",
        )


def enrollments_page():
    st.header("📝 Enrollments")

    pricing = get_pricing()
    student = student_picker(key="enroll_student")
    if student is None:
        return

    st.subheader(f"New enrollment for {student.full_name}")
    col1, col2, col3 = st.columns(3)
    with col1:
        course = st.selectbox("Course", options=list(COURSES), format_func=COURSE_LABELS.get)
    with col2:
        session_time = st.selectbox("Session time", options=list(SESSION_TIMES), format_func=SESSION_TIME_LABELS.get)
    with col3:
        plan_options = pricing.options(course, session_time)
        plan_days = st.selectbox(
            "Payment plan",
            options=[d for d, _ in plan_options],
            format_func=lambda d: f"{d} day{'s' if d > 1 else ''} - {money(dict(plan_options)[d])}",
        )

    selection = enrollments.build_selection(course, session_time, plan_days)
    start = date.today().isoformat()
    st.info(
        f"Price: **{money(selection.price(pricing))}** | "
        f"Start: **{start}** | End: **{utils.calc_end_date(start, selection.plan_days)}**"
    )

    if st.button("Add enrollment", type="primary"):
        try:
            enrollments.create_enrollment(student.id, course, session_time, plan_days, pricing)
        except DriveTrackError as e:
            show_error(e)
        else:
            st.success("Enrollment added.")
            st.rerun()

    st.divider()
    st.subheader("Enrollments")
    rows = enrollments.list_enrollments(student.id)
    if not rows:
        st.caption("No enrollments for this student yet.")
        return
    for e in rows:
        c1, c2, c3 = st.columns([4, 2, 1])
        c1.write(
            f"**{LICENSE_LABELS.get(e.license_type, e.license_type)}** "
            f"{SESSION_TIME_LABELS.get(e.session_time, e.session_time)}, {e.payment_plan} days - "
            f"{money(e.total_amount)} ({e.start_date} to {e.end_date})"
        )
        status = c2.selectbox(
            "Status", ENROLLMENT_STATUSES,
            index=ENROLLMENT_STATUSES.index(e.status) if e.status in ENROLLMENT_STATUSES else 0,
            key=f"enr_status_{e.id}", label_visibility="collapsed",
        )
        if status != e.status:
            try:
                enrollments.set_enrollment_status(e.id, status)
            except DriveTrackError as exc:
                show_error(exc)
            else:
                st.rerun()
        if c3.button("Delete", key=f"del_enr_{e.id}"):
            try:
                enrollments.delete_enrollment(e.id)
            except DriveTrackError as exc:
                show_error(exc)
            else:
                st.rerun()


def print_receipt(event: payments.PaymentRecorded):
    # Shown under the form after the rerun
    st.session_state.last_receipt = event


def payments_page():
    st.header("💳 Payments")

    student = student_picker(key="pay_student", default_id=st.session_state.get("payments_student_id"))
    if student is None:
        return
    st.session_state.payments_student_id = student.id

    owned, history = payments.load_ledger(student.id)
    records = attendance.list_attendance(student.id)
    balance = compute_balance(owned, history)

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Total owed", money(balance.total_owed))
    c2.metric("Paid", money(balance.total_paid))
    c3.metric("Discounts", money(balance.total_discount))
    c4.metric("Remaining", money(balance.remaining))
    if balance.remaining_signed < 0:
        st.warning(f"Overpaid by {money(-balance.remaining_signed)}.")

    for p in attendance.lesson_progress(owned, records):
        st.write(
            f"{LICENSE_LABELS[p.lesson_type]}: {p.days_attended} of {p.plan_lessons} lessons attended, "
            f"{p.remaining_lessons} remaining"
        )

    st.subheader("Record payment")
    with st.form("payment_form", clear_on_submit=True):
        c1, c2, c3 = st.columns(3)
        with c1:
            amount = st.text_input("Amount", value="")
            mark_full = st.checkbox(f"Pay full remaining ({money(balance.remaining)})", value=False)
        with c2:
            discount = st.text_input("Discount (optional)", value="")
            method = st.selectbox("Method", list(PAYMENT_METHODS))
        with c3:
            note = st.text_input("Note", value="")
            want_receipt = st.checkbox("Print receipt", value=False)
        submitted = st.form_submit_button("Record payment", type="primary")

    if submitted:
        events = payments.PaymentEvents()
        if want_receipt:
            events.subscribe(print_receipt)
        try:
            with warnings.catch_warnings(record=True) as caught:
                warnings.simplefilter("always", StaleDataWarning)
                recorded = payments.record_payment(
                    student.id,
                    amount=amount,
                    discount=discount,
                    method=method,
                    note=note,
                    mark_full_paid=mark_full,
                    expected_remaining=balance.remaining if mark_full else None,
                    events=events,
                )
        except DriveTrackError as e:
            show_error(e)
        else:
            # Shown after the rerun so the balance above is fresh
            st.session_state.pay_flash = [("warning", str(w.message)) for w in caught] + [
                (
                    "success",
                    f"Recorded {money(recorded.amount)}"
                    + (f" and discount {money(recorded.discount)}" if recorded.discount else "")
                    + f". Remaining: {money(recorded.balance.remaining)}",
                )
            ]
            st.rerun()

    for level, msg in st.session_state.pop("pay_flash", []):
        getattr(st, level)(msg)

    receipt = st.session_state.pop("last_receipt", None)
    if receipt is not None:
        st.subheader("Receipt")
        st.text(
            "\n".join(
                [
                    f"Date:      {receipt.date}",
                    f"Student:   {receipt.student_name} ({receipt.student_phone})",
                    f"Course:    {receipt.course}",
                    f"Method:    {receipt.method.upper()}",
                    f"Amount:    {money(receipt.amount)}",
                    f"Discount:  {money(receipt.discount)}",
                    f"Paid:      {money(receipt.balance.total_paid)}",
                    f"Remaining: {money(receipt.balance.remaining)}",
                ]
            )
        )

    st.divider()

    st.subheader("Payment history")
    if history:
        st.dataframe(
            pd.DataFrame(
                [
                    {
                        "id": t.id,
                        "date": t.transaction_date,
                        "amount": t.amount,
                        "method": t.payment_method,
                        "type": t.payment_type,
                        "kind": t.kind,
                        "status": t.status,
                        "description": t.description,
                    }
                    for t in history
                ]
            ),
            use_container_width=True,
            hide_index=True,
        )
    else:
        st.caption("No payments for this student yet.")


def attendance_page():
    st.header("🗓️ Attendance")

    st.subheader("Quick check-in")
    student = student_picker(active_only=True, key="checkin_student")
    if student is not None:
        lesson_type = st.radio("Lesson", list(LICENSE_TYPES), format_func=LICENSE_LABELS.get, horizontal=True)
        if st.button("Check in", type="primary"):
            try:
                attendance.check_in(student.id, lesson_type)
            except DriveTrackError as e:
                show_error(e)
            else:
                st.success(f"{student.full_name} checked in.")
                st.rerun()

        with st.expander("Schedule a lesson"):
            c1, c2, c3 = st.columns(3)
            with c1:
                s_date = st.date_input("Date", value=date.today()).isoformat()
                s_type = st.selectbox("Type", list(LICENSE_TYPES), format_func=LICENSE_LABELS.get)
            with c2:
                s_time = st.time_input("Time").strftime("%H:%M")
                s_duration = st.number_input("Duration (hours)", min_value=0.5, value=1.0, step=0.5)
            with c3:
                s_notes = st.text_input("Notes")
            if st.button("Schedule"):
                try:
                    attendance.schedule_lesson(student.id, s_type, s_date, s_time, s_duration, s_notes)
                except DriveTrackError as e:
                    show_error(e)
                else:
                    st.success("Lesson scheduled.")
                    st.rerun()

    st.divider()

    day = st.date_input("Roster for", value=date.today(), key="roster_day").isoformat()
    roster = attendance.roster(day)
    cols = st.columns(len(LICENSE_TYPES))
    for col, lesson_type in zip(cols, ("car", "bike")):
        with col:
            st.subheader(LICENSE_LABELS[lesson_type])
            rows = roster.get(lesson_type, [])
            if not rows:
                st.caption("No lessons.")
            for r in rows:
                c1, c2, c3 = st.columns([3, 2, 1])
                c1.write(f"{r['lesson_time']} **{r['full_name'] or 'Unknown'}** ({r['phone'] or ''})")
                status = c2.selectbox(
                    "Status", ATTENDANCE_STATUSES,
                    index=ATTENDANCE_STATUSES.index(r["status"]),
                    key=f"att_status_{r['id']}", label_visibility="collapsed",
                )
                if status != r["status"]:
                    try:
                        attendance.set_status(r["id"], status)
                    except DriveTrackError as e:
                        show_error(e)
                    else:
                        st.rerun()
                if c3.button("🗑", key=f"del_att_{r['id']}"):
                    try:
                        attendance.delete_attendance(r["id"])
                    except DriveTrackError as e:
                        show_error(e)
                    else:
                        st.rerun()


def transactions_page():
    st.header("🧾 Transactions")

    with st.sidebar:
        st.subheader("Filters")
        search = st.text_input("Student (name/phone)", key="txn_search")
        kind_filter = st.selectbox("Kind", ["All", KIND_PAYMENT, KIND_DISCOUNT], key="txn_kind")

    rows = payments.transactions_report(kind=None if kind_filter == "All" else kind_filter)
    needle = search.strip().lower()
    if needle:
        rows = [r for r in rows if needle in (r["full_name"] or "").lower() or needle in (r["phone"] or "")]
    if not rows:
        st.caption("No transactions match." if needle or kind_filter != "All" else "No transactions yet.")
        return

    df = pd.DataFrame(rows)[
        ["id", "transaction_date", "full_name", "phone", "enrollment_type", "amount",
         "payment_method", "payment_type", "kind", "status", "description"]
    ]
    st.dataframe(df, use_container_width=True, hide_index=True)

    st.download_button(
        "Download transactions.csv",
        data=utils.rows_to_csv_bytes(rows),
        file_name="transactions.csv",
        mime="text/csv",
    )

    st.divider()
    c1, c2 = st.columns([1, 2])
    with c1:
        selected = st.selectbox("Transaction ID", ["(none)"] + [str(r["id"]) for r in rows])
    with c2:
        if selected != "(none)":
            confirm = st.checkbox("Confirm delete", value=False, key="del_txn_confirm")
            if st.button("Delete transaction", disabled=not confirm):
                try:
                    payments.delete_transaction(int(selected))
                except DriveTrackError as e:
                    show_error(e)
                else:
                    st.success("Transaction deleted.")
                    st.rerun()


def instructors_page():
    st.header("🧑‍🏫 Instructors")

    rows = instructors.list_instructors()
    df = pd.DataFrame(
        [
            {
                "id": i.id,
                "full_name": i.full_name,
                "phone": i.phone,
                "email": i.email,
                "license_number": i.license_number or "N/A",
                "specialization": ", ".join(COURSE_LABELS.get(s, s) for s in i.specialization),
                "status": i.status,
            }
            for i in rows
        ],
        columns=["id", "full_name", "phone", "email", "license_number", "specialization", "status"],
    )
    st.dataframe(df, use_container_width=True, hide_index=True)

    st.subheader("➕ Add Instructor")
    c1, c2 = st.columns(2)
    with c1:
        full_name = st.text_input("Full name", key="ins_name")
        phone = st.text_input("Phone", key="ins_phone")
        email = st.text_input("Email (optional)", key="ins_email")
    with c2:
        license_number = st.text_input("License number", key="ins_license")
        specialization = st.multiselect("Specialization", list(COURSES), format_func=COURSE_LABELS.get)
        status = st.selectbox("Status", list(INSTRUCTOR_STATUSES), key="ins_status")
    if st.button("Add instructor", type="primary"):
        try:
            instructors.create_instructor(full_name, phone, email, license_number, specialization, status)
        except DriveTrackError as e:
            show_error(e)
        else:
            st.success("Instructor added.")
            st.rerun()

    if rows:
        st.divider()
        selected = st.selectbox("Instructor ID", ["(none)"] + [str(i.id) for i in rows])
        if selected != "(none)" and st.button("Delete instructor"):
            try:
                instructors.delete_instructor(int(selected))
            except DriveTrackError as e:
                show_error(e)
            else:
                st.rerun()


def settings_page():
    st.header("⚙️ Settings")

    pricing = get_pricing()
    st.subheader("Pricing table")
    st.caption("Changes apply to new enrollments only.")
    prices = pricing.as_dict()
    edited: dict = {}
    for course in COURSES:
        st.markdown(f"**{COURSE_LABELS[course]}**")
        cols = st.columns(len(PLAN_DAYS) + 1)
        for session_time in SESSION_TIMES:
            cols[0].write(SESSION_TIME_LABELS[session_time])
            for col, days in zip(cols[1:], PLAN_DAYS):
                edited.setdefault(course, {}).setdefault(session_time, {})[days] = col.number_input(
                    f"{days} day{'s' if days > 1 else ''}",
                    min_value=0,
                    step=100,
                    value=int(prices[course][session_time][days]),
                    key=f"price_{course}_{session_time}_{days}",
                )

    c1, c2 = st.columns(2)
    if c1.button("Save pricing", type="primary"):
        try:
            pricing.update(edited)
        except DriveTrackError as e:
            show_error(e)
        else:
            st.success("Pricing saved.")
    if c2.button("Reset to default"):
        try:
            pricing.reset_to_default()
        except DriveTrackError as e:
            show_error(e)
        else:
            for key in [k for k in st.session_state if str(k).startswith("price_")]:
                del st.session_state[key]
            st.rerun()

    st.divider()

    st.subheader("Sample data")
    st.caption("Insert 3 sample students with enrollments, payments and check-ins (adds new rows each run).")
    if st.button("Insert sample data"):
        try:
            utils.insert_sample_data()
        except DriveTrackError as e:
            show_error(e)
        else:
            st.success("Sample data inserted.")
            st.rerun()


def main_app():
    st.sidebar.title("🚗 DriveTrack POS")

    pages = ["Dashboard", "Students", "Enrollments", "Payments", "Attendance", "Transactions", "Instructors", "Settings"]
    if "page" not in st.session_state:
        st.session_state.page = "Dashboard"
    st.session_state.page = st.sidebar.radio("Navigate", pages, index=pages.index(st.session_state.page))

    try:
        if st.session_state.page == "Dashboard":
            dashboard_page()
        elif st.session_state.page == "Students":
            students_page()
        elif st.session_state.page == "Enrollments":
            enrollments_page()
        elif st.session_state.page == "Payments":
            payments_page()
        elif st.session_state.page == "Attendance":
            attendance_page()
        elif st.session_state.page == "Transactions":
            transactions_page()
        elif st.session_state.page == "Instructors":
            instructors_page()
        elif st.session_state.page == "Settings":
            settings_page()
    except DriveTrackError as e:
        # Reads can fail too (store unreachable); keep the app usable
        logger.error("Page %s failed: %s", st.session_state.page, e)
        show_error(e)


# --------- App entry ---------

def run():
    init_once()
    main_app()


if __name__ == "__main__":
    run()
