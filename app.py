"""
app.py
Streamlit fitness club dashboard (members + staff).
Run: streamlit run app.py
"""

from __future__ import annotations

import logging
from datetime import date

import pandas as pd
import streamlit as st

import auth
import classes
import community
import config
import db
import facility
import membership
import seed
import utils
from booking import BookingAuthority
from models import (
    ANNOUNCEMENT_PRIORITIES,
    EQUIPMENT_STATUSES,
    REJECTION_MESSAGES,
    SUBSCRIPTION_STATUSES,
    BookingRejection,
)
from notifier import DbNotifier

logging.basicConfig(level=getattr(logging, config.LOG_LEVEL, logging.INFO))

st.set_page_config(page_title="Fitness Club Dashboard", layout="wide")


@st.cache_resource
def get_notifier() -> DbNotifier:
    return DbNotifier()


@st.cache_resource
def get_booking_authority() -> BookingAuthority:
    # One instance per server process so every session shares the same locks
    return BookingAuthority(notifier=get_notifier())


def init_once():
    # Initialize DB + default admin if needed
    default_hash = auth.hash_password(config.DEFAULT_ADMIN_PASSWORD)
    db.init_db(default_hash)


def require_login():
    if "logged_in" not in st.session_state:
        st.session_state.logged_in = False
    if "user_id" not in st.session_state:
        st.session_state.user_id = None
        st.session_state.email = None
        st.session_state.is_staff = False


def logout():
    st.session_state.logged_in = False
    st.session_state.user_id = None
    st.session_state.email = None
    st.session_state.is_staff = False
    st.success("Logged out.")


def _start_session(user):
    st.session_state.logged_in = True
    st.session_state.user_id = user["id"]
    st.session_state.email = user["email"]
    st.session_state.is_staff = bool(user["is_staff"])


def login_screen():
    st.title("🏋️ Fitness Club")

    col1, col2 = st.columns([1, 1])
    with col1:
        st.subheader("Sign in")
        email = st.text_input("Email", value="")
        password = st.text_input("Password", type="password")
        if st.button("Login", type="primary"):
            user = auth.login(email.strip(), password)
            if user:
                _start_session(user)
                st.rerun()
            else:
                st.error("Invalid email or password.")

        st.info(
            "First run creates a default staff account:\n\n"
            f"- email: **{config.DEFAULT_ADMIN_EMAIL}**\n"
            f"- password: **{config.DEFAULT_ADMIN_PASSWORD}**\n\n"
            "You will be forced to change it on first login."
        )

    with col2:
        st.subheader("Join the club")
        new_email = st.text_input("Email", key="reg_email")
        full_name = st.text_input("Full name", key="reg_name")
        new_password = st.text_input("Password", type="password", key="reg_password")
        tier_names = [t["name"] for t in membership.list_tiers()]
        tier_name = st.selectbox("Membership tier", tier_names)
        if st.button("Create account"):
            try:
                user_id = auth.register_member(new_email, full_name, new_password, tier_name)
            except ValueError as exc:
                st.error(str(exc))
            else:
                _start_session(auth.get_user(user_id))
                st.rerun()


def force_change_password_screen():
    st.title("⚠️ Change Password (Required)")

    st.warning("You must change the default password before using the app.")
    new1 = st.text_input("New password", type="password")
    new2 = st.text_input("Confirm new password", type="password")

    if st.button("Update password", type="primary"):
        errors = auth.validate_new_password(new1, new2)
        if errors:
            for e in errors:
                st.error(e)
            return
        auth.change_password(st.session_state.email, new1)
        st.success("Password updated. You can continue.")
        st.rerun()


# ---------- Member pages ----------

def dashboard_page():
    st.header("📊 Dashboard")

    user_id = st.session_state.user_id
    tier = membership.get_tier_snapshot(user_id)
    sub = membership.get_subscription(user_id)
    booked = membership.classes_booked_this_month(user_id)
    upcoming = classes.my_bookings(user_id)

    c1, c2, c3 = st.columns(3)
    c1.metric("Membership", tier.name if tier else "Inactive")
    quota = "∞" if tier is None or tier.max_classes_per_month is None else tier.max_classes_per_month
    c2.metric("Classes this month", f"{booked} / {quota}")
    c3.metric("Upcoming classes", len(upcoming))

    if sub and not sub.confers_booking_rights:
        st.warning(f"Your subscription is {sub.status.replace('_', ' ')}. Booking is disabled until it is active.")

    st.divider()

    left, right = st.columns(2)
    with left:
        st.subheader("Upcoming classes")
        if upcoming:
            st.dataframe(pd.DataFrame([dict(r) for r in upcoming])[
                ["name", "scheduled_date", "start_time", "end_time", "instructor_name"]
            ], use_container_width=True, hide_index=True)
        else:
            st.caption("No upcoming classes. Book one from the Classes page.")

        st.subheader("Announcements")
        for a in community.active_announcements():
            icon = "❗" if a["priority"] == "high" else "📣"
            st.write(f"{icon} **{a['title']}**: {a['message']}")

    with right:
        st.subheader("Notifications")
        notes = community.notifications_for(user_id)
        if notes:
            for n in notes:
                marker = "" if n["is_read"] else "🔵 "
                st.write(f"{marker}**{n['title']}**: {n['message']}")
            if st.button("Mark all as read"):
                community.mark_notifications_read(user_id)
                st.rerun()
        else:
            st.caption("No notifications yet.")


def classes_page():
    st.header("📅 Book a Class")

    user_id = st.session_state.user_id
    authority = get_booking_authority()
    tier = membership.get_tier_snapshot(user_id)

    days = utils.next_days(config.BOOKING_WINDOW_DAYS)
    selected = st.radio(
        "Date",
        days,
        format_func=lambda d: d.strftime("%a %b %d"),
        horizontal=True,
    )

    my = {b["schedule_id"] for b in classes.my_bookings(user_id, upcoming_only=False)}
    sessions = classes.schedules_for_date(selected)
    if not sessions:
        st.caption("No classes scheduled for this date.")

    for s in sessions:
        with st.container(border=True):
            c1, c2 = st.columns([4, 1])
            with c1:
                badge = " ⭐ PREMIUM" if s["is_premium"] else ""
                st.markdown(f"**{s['name']}**{badge}")
                if s["description"]:
                    st.caption(s["description"])
                occupancy = authority.current_occupancy(s["id"])
                st.write(
                    f"🕒 {s['start_time']} - {s['end_time']} | 👥 {occupancy} / {s['capacity']} | "
                    f"Instructor: {s['instructor_name']}"
                )
            with c2:
                if s["id"] in my:
                    if st.button("Cancel", key=f"cancel_{s['id']}"):
                        outcome = authority.cancel(user_id, s["id"])
                        if outcome.ok:
                            st.success("Booking cancelled.")
                            st.rerun()
                        else:
                            st.error(REJECTION_MESSAGES[outcome.rejection])
                else:
                    full = authority.is_full(s["id"])
                    eligible = tier is not None and (tier.allows_premium_classes or not s["is_premium"])
                    label = "Full" if full else ("Upgrade Required" if not eligible else "Book")
                    if st.button(label, key=f"book_{s['id']}", type="primary", disabled=full or not eligible):
                        outcome = authority.attempt_book(user_id, tier, s["id"])
                        if outcome.ok:
                            st.success(f"Booked {s['name']}.")
                            st.rerun()
                        elif outcome.rejection is BookingRejection.UNAVAILABLE:
                            st.error(REJECTION_MESSAGES[outcome.rejection])
                        else:
                            st.warning(REJECTION_MESSAGES[outcome.rejection])


def facility_page():
    st.header("🏟️ Facility")

    user_id = st.session_state.user_id
    latest = facility.latest_gym_capacity()
    label, pct = facility.capacity_status(
        latest["current_count"] if latest else None,
        latest["max_capacity"] if latest else None,
    )
    c1, c2 = st.columns(2)
    c1.metric("Gym floor", label, f"{pct:.0f}%" if pct is not None else None)
    c2.caption(f"Last updated: {latest['logged_at'] if latest else 'N/A'}")

    st.divider()

    st.subheader("Equipment")
    for e in facility.list_equipment():
        c1, c2 = st.columns([4, 1])
        c1.write(f"**{e['name']}** ({e['category']}) - {e['status'].replace('_', ' ')}")
        with c2:
            if facility.is_waiting(user_id, e["id"]):
                st.caption("On waitlist")
            elif e["status"] != "available":
                if st.button("Join waitlist", key=f"wait_{e['id']}"):
                    facility.join_waitlist(user_id, e["id"], get_notifier())
                    st.rerun()

    st.subheader("My waitlist")
    for w in facility.my_waitlist(user_id):
        c1, c2 = st.columns([4, 1])
        c1.write(f"{w['name']} (joined {w['joined_at']})")
        if c2.button("Leave", key=f"leave_{w['id']}"):
            facility.leave_waitlist(w["id"], user_id)
            st.rerun()


def community_page():
    st.header("🤝 Community")

    user_id = st.session_state.user_id
    feed_tab, challenges_tab = st.tabs(["Feed", "Challenges"])

    with feed_tab:
        content = st.text_area("Share your progress")
        activity_type = st.selectbox("Type", ["post", "workout", "achievement"])
        if st.button("Post", type="primary"):
            try:
                community.post_activity(user_id, activity_type, content)
            except ValueError as exc:
                st.error(str(exc))
            else:
                st.rerun()

        for a in community.recent_activity():
            st.write(f"**{a['full_name']}** · {a['activity_type']} · {a['created_at']}")
            st.write(a["content"])
            st.divider()

    with challenges_tab:
        challenges = community.active_challenges()
        if not challenges:
            st.caption("No active challenges.")
        for c in challenges:
            with st.container(border=True):
                phase = community.challenge_phase(c["start_date"], c["end_date"])
                st.markdown(f"**{c['title']}** ({phase})")
                if c["description"]:
                    st.caption(c["description"])
                st.write(
                    f"Target: {c['target_value']:g} {c['challenge_type']} | "
                    f"{c['start_date']} to {c['end_date']} | {c['participants']} participants"
                )
                if community.is_participating(user_id, c["id"]):
                    st.caption("You're in!")
                elif phase != "ended" and st.button("Join", key=f"join_{c['id']}"):
                    community.join_challenge(user_id, c["id"], get_notifier())
                    st.rerun()


def profile_page():
    st.header("👤 Profile")

    user = auth.get_user(st.session_state.user_id)
    full_name = st.text_input("Full name", value=user["full_name"])
    emergency = st.text_input("Emergency contact", value=user["emergency_contact"] or "")
    goals = st.text_area("Fitness goals", value=user["fitness_goals"] or "")

    if st.button("Save profile", type="primary"):
        try:
            auth.update_profile(user["id"], full_name, emergency, goals)
        except ValueError as exc:
            st.error(str(exc))
        else:
            st.success("Profile updated successfully!")

    st.divider()

    st.subheader("Membership")
    sub = membership.get_subscription(user["id"])
    if sub:
        tier = membership.get_tier(sub.tier_id)
        st.write(
            f"Tier: **{tier.name}** | Status: **{sub.status}** | "
            f"Billing: **{sub.billing_cycle}** | Renews: **{sub.renewal_date}**"
        )
    else:
        st.caption("No membership on file.")


# ---------- Staff pages ----------

def staff_page():
    st.header("🛠️ Staff Dashboard")

    stats = utils.staff_stats()
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Total members", stats["total_members"])
    c2.metric("Active subscriptions", stats["active_subscriptions"])
    c3.metric("Total classes", stats["total_classes"])
    c4.metric("Today's bookings", stats["today_bookings"])

    left, right = st.columns(2)
    with left:
        st.subheader("Recent members")
        rows = utils.recent_members()
        if rows:
            st.dataframe(pd.DataFrame([dict(r) for r in rows]), use_container_width=True, hide_index=True)
        else:
            st.caption("No members yet.")
    with right:
        st.subheader("Popular classes")
        rows = classes.popular_classes()
        if rows:
            st.dataframe(pd.DataFrame([dict(r) for r in rows]), use_container_width=True, hide_index=True)

    st.divider()

    st.subheader("➕ Add class")
    c1, c2, c3 = st.columns(3)
    with c1:
        name = st.text_input("Class name")
        instructor = st.text_input("Instructor")
    with c2:
        duration = st.number_input("Duration (minutes)", min_value=1, value=60, step=5)
        capacity = st.number_input("Capacity", min_value=1, value=12, step=1)
    with c3:
        is_premium = st.checkbox("Premium class")
        description = st.text_input("Description")
    errors = utils.validate_class_inputs(name, instructor, duration, capacity)
    if st.button("Create class", disabled=bool(errors)):
        classes.create_class(name, instructor, int(duration), int(capacity), is_premium, description)
        st.success("Class created.")
        st.rerun()

    st.subheader("🗓️ Schedule a session")
    catalog = classes.list_classes()
    if catalog:
        options = {f"{c['name']} - {c['instructor_name']}": c["id"] for c in catalog}
        c1, c2, c3 = st.columns(3)
        chosen = c1.selectbox("Class", list(options.keys()))
        day = c2.date_input("Date", value=date.today())
        start = c3.time_input("Start time")
        if st.button("Schedule", type="primary"):
            try:
                classes.schedule_class(options[chosen], day, start.strftime("%H:%M"))
            except ValueError as exc:
                st.error(str(exc))
            else:
                st.success("Session scheduled.")
    else:
        st.caption("Create a class first.")

    st.subheader("Sessions")
    day = st.date_input("Sessions on", value=date.today(), key="staff_day")
    sessions = classes.schedules_for_date(day)
    for s in sessions:
        c1, c2, c3 = st.columns([4, 1, 1])
        c1.write(f"{s['start_time']} **{s['name']}** {s['current_bookings']} / {s['capacity']}")
        if c2.button("Complete", key=f"done_{s['id']}"):
            classes.set_schedule_status(s["id"], "completed")
            st.rerun()
        if c3.button("Cancel", key=f"cancel_session_{s['id']}"):
            classes.set_schedule_status(s["id"], "cancelled")
            st.rerun()
    fill = utils.session_fill_summary()
    if not fill.empty:
        st.dataframe(fill, use_container_width=True, hide_index=True)

    st.divider()

    st.subheader("📣 Announcement")
    title = st.text_input("Title", key="ann_title")
    message = st.text_area("Message", key="ann_message")
    priority = st.selectbox("Priority", ANNOUNCEMENT_PRIORITIES, index=ANNOUNCEMENT_PRIORITIES.index("normal"))
    if st.button("Publish"):
        try:
            community.create_announcement(title, message, priority)
        except ValueError as exc:
            st.error(str(exc))
        else:
            st.success("Announcement published.")

    st.subheader("🏆 Challenge")
    c1, c2, c3 = st.columns(3)
    ch_title = c1.text_input("Challenge title")
    ch_type = c2.text_input("Measured in", value="minutes")
    ch_target = c3.number_input("Target", min_value=1.0, value=100.0)
    ch_start = c1.date_input("Starts", value=date.today(), key="ch_start")
    ch_end = c2.date_input("Ends", value=date.today(), key="ch_end")
    if st.button("Create challenge"):
        try:
            community.create_challenge(ch_title, ch_type, ch_target, ch_start.isoformat(), ch_end.isoformat(),
                                       created_by=st.session_state.user_id)
        except ValueError as exc:
            st.error(str(exc))
        else:
            st.success("Challenge created.")

    st.subheader("🏟️ Facility")
    c1, c2 = st.columns(2)
    with c1:
        eq_name = st.text_input("Equipment name")
        eq_category = st.text_input("Category", value="cardio")
        if st.button("Add equipment"):
            try:
                facility.add_equipment(eq_name, eq_category)
            except ValueError as exc:
                st.error(str(exc))
            else:
                st.rerun()
        for e in facility.list_equipment():
            new_status = st.selectbox(
                e["name"], EQUIPMENT_STATUSES,
                index=EQUIPMENT_STATUSES.index(e["status"]), key=f"eq_{e['id']}",
            )
            if new_status != e["status"]:
                facility.set_equipment_status(e["id"], new_status)
                st.rerun()
    with c2:
        current = st.number_input("People on the floor", min_value=0, value=0, step=1)
        max_cap = st.number_input("Floor capacity", min_value=1, value=150, step=1)
        if st.button("Log occupancy"):
            facility.log_gym_capacity(int(current), int(max_cap))
            st.success("Logged.")


def reports_page():
    st.header("🧾 Reports")

    st.subheader("Export bookings to CSV")
    bookings = utils.bookings_export_rows()
    if bookings:
        st.download_button(
            "Download bookings.csv",
            data=utils.rows_to_csv_bytes(bookings),
            file_name="bookings.csv",
            mime="text/csv",
        )
    else:
        st.caption("No bookings to export.")

    st.divider()

    st.subheader("Export members to CSV")
    members = utils.members_export_rows()
    if members:
        st.download_button(
            "Download members.csv",
            data=utils.rows_to_csv_bytes(members),
            file_name="members.csv",
            mime="text/csv",
        )
    else:
        st.caption("No members to export.")

    st.divider()

    st.subheader("Membership changes")
    member_rows = utils.members_export_rows()
    if member_rows:
        labels = {f"{m['full_name']} ({m['email']}) - ID {m['id']}": m["id"] for m in member_rows}
        chosen = st.selectbox("Member", list(labels.keys()))
        member_id = labels[chosen]
        tiers = {t["name"]: t["id"] for t in membership.list_tiers()}
        c1, c2 = st.columns(2)
        new_tier = c1.selectbox("Tier", list(tiers.keys()))
        if c1.button("Change tier"):
            try:
                membership.change_tier(member_id, tiers[new_tier])
            except ValueError as exc:
                st.error(str(exc))
            else:
                st.success("Tier updated.")
        new_status = c2.selectbox("Subscription status", SUBSCRIPTION_STATUSES)
        if c2.button("Set status"):
            try:
                membership.set_subscription_status(member_id, new_status)
            except ValueError as exc:
                st.error(str(exc))
            else:
                st.success("Status updated.")


def settings_page():
    st.header("⚙️ Settings")

    st.subheader("Change password")
    p1 = st.text_input("New password", type="password")
    p2 = st.text_input("Confirm new password", type="password")
    if st.button("Update password", type="primary"):
        errors = auth.validate_new_password(p1, p2)
        if errors:
            for e in errors:
                st.error(e)
        else:
            auth.change_password(st.session_state.email, p1)
            st.success("Password updated.")

    if st.session_state.is_staff:
        st.divider()

        st.subheader("Sample data")
        st.caption("Insert sample classes, sessions, equipment and a demo member (adds new rows each run).")
        if st.button("Insert sample data"):
            seed.insert_sample_data()
            st.success("Sample data inserted.")
            st.rerun()


def main_app():
    st.sidebar.title("🏋️ Fitness Club")
    st.sidebar.caption(f"Logged in as: {st.session_state.email}")

    pages = ["Dashboard", "Classes", "Facility", "Community", "Profile", "Settings"]
    if st.session_state.is_staff:
        pages = ["Staff", "Reports"] + pages
    if st.session_state.get("page") not in pages:
        st.session_state.page = pages[0]
    st.session_state.page = st.sidebar.radio("Navigate", pages, index=pages.index(st.session_state.page))

    if st.sidebar.button("Logout"):
        logout()
        st.rerun()

    if st.session_state.page == "Dashboard":
        dashboard_page()
    elif st.session_state.page == "Classes":
        classes_page()
    elif st.session_state.page == "Facility":
        facility_page()
    elif st.session_state.page == "Community":
        community_page()
    elif st.session_state.page == "Profile":
        profile_page()
    elif st.session_state.page == "Staff":
        staff_page()
    elif st.session_state.page == "Reports":
        reports_page()
    elif st.session_state.page == "Settings":
        settings_page()


# --------- App entry ---------

def run():
    init_once()
    require_login()

    if not st.session_state.logged_in:
        login_screen()
        return

    # Force password change on first login after DB creation
    if st.session_state.is_staff and db.is_force_password_change():
        force_change_password_screen()
        return

    main_app()


if __name__ == "__main__":
    run()
