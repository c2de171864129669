"""
Room, bus and activity assignments for the signed-in participant.
"""
import streamlit as st
from errors import PortalError
import utils
import auth

def other_roommates(roommates, user_name):
    """Roommates without the participant themself."""
    return [mate for mate in roommates if mate.user_name != user_name]

@auth.requires_auth('view_portal')
def render_assignments(db):
    """Render the participant's own assignments."""
    st.title("My Assignments")

    user = auth.current_user()

    tabs = st.tabs(["Room", "Bus", "Activity"])

    with tabs[0]:
        render_room(db, user)

    with tabs[1]:
        render_bus(db, user)

    with tabs[2]:
        render_activity(db, user)

def render_room(db, user):
    try:
        room = db.get_room_assignment_by_name(user.name)
        roommates = other_roommates(db.get_roommates(room.room_id), user.name) if room else []
    except PortalError as e:
        utils.show_action_error(e)
        return

    if room is None:
        st.info("You have not been assigned a room yet.")
        return

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Building", room.building_name or "-")
    with col2:
        st.metric("Room", room.room_number or "-")
    with col3:
        st.metric("Occupants", len(roommates) + 1)

    if room.room_type:
        st.caption(f"Room type: {room.room_type}")

    st.subheader(f"Roommates ({len(roommates)})")
    if not roommates:
        st.write("No roommates assigned yet.")
    for mate in roommates:
        details = " ".join(filter(None, [mate.school, mate.major]))
        st.markdown(f"- **{mate.user_name}** {details}")

def render_bus(db, user):
    try:
        bus = db.get_bus_assignment(user.name)
    except PortalError as e:
        utils.show_action_error(e)
        return

    if bus is None:
        st.info("You have not been assigned a bus yet.")
        return

    col1, col2 = st.columns(2)
    with col1:
        st.subheader("Departure")
        st.metric("Bus", bus.departure_bus or "-")
        st.write(f"🕘 {utils.format_time(bus.departure_time)}")
        st.write(f"📍 {bus.departure_location or '-'}")
    with col2:
        st.subheader("Return")
        st.metric("Bus", bus.return_bus or "-")
        st.write(f"🕘 {utils.format_time(bus.return_time)}")
        st.write(f"📍 {bus.arrival_location or '-'}")

    if bus.notes:
        st.info(bus.notes)

def render_activity(db, user):
    try:
        activity = db.get_activity_assignment(user.name)
    except PortalError as e:
        utils.show_action_error(e)
        return

    if activity is None:
        st.info("You have not been assigned an activity program yet.")
        return

    st.metric("Program", activity.program_type)
    st.write(f"🕘 {activity.session_time or '-'}")
    st.write(f"📍 {activity.location or '-'}")
    if activity.notes:
        st.info(activity.notes)
