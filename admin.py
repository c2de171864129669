"""
Back-office pages: participants, notices and transport/activity assignments.
"""
import streamlit as st
import pandas as pd
import logging
from database import bus_statistics, activity_statistics
from errors import PortalError
import utils
import auth
import config

logger = logging.getLogger(__name__)

@auth.requires_auth('manage_users')
def render_admin(db):
    """Render the admin back-office."""
    st.title("Administration")

    tabs = st.tabs(["Participants", "Notices", "Bus", "Activities"])

    with tabs[0]:
        render_user_management(db)

    with tabs[1]:
        render_notice_management(db)

    with tabs[2]:
        render_bus_management(db)

    with tabs[3]:
        render_activity_management(db)

def render_user_management(db):
    """Render the participant management section."""
    st.header("Participants")

    try:
        users = db.get_users()
    except PortalError as e:
        utils.show_action_error(e)
        return

    if users:
        st.dataframe(utils.participants_to_dataframe(users), hide_index=True)
    else:
        st.info("No participants found.")

    st.subheader("Add Participant")

    with st.form("new_user_form", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            name = st.text_input("Name")
            school = st.text_input("School")
            generation = st.text_input("Generation")
        with col2:
            phone = st.text_input("Phone")
            major = st.text_input("Major")
            gender = st.selectbox("Gender", ["F", "M"])

        submit = st.form_submit_button("Add Participant")

    if submit:
        if not all(v.strip() for v in (name, school, major, generation)):
            st.error("Name, school, major and generation are required.")
        elif any(u.name == name.strip() for u in users):
            st.error(f"'{name.strip()}' is already in the directory.")
        else:
            try:
                db.create_user(name, school, major, generation, gender, phone)
            except PortalError as e:
                utils.show_action_error(e)
            else:
                st.success(f"'{name.strip()}' added!")
                st.rerun()

    if not users:
        return

    current = auth.current_user()
    st.subheader("Edit or Remove")

    user_options = {f"{u.name} · {u.summary()}": u for u in users}
    selected_key = st.selectbox("Select participant", list(user_options.keys()))
    selected = user_options[selected_key]

    role_names = {info['name']: role for role, info in config.ROLES.items()}
    current_role_name = config.ROLES.get(selected.role or config.DEFAULT_ROLE, config.ROLES[config.DEFAULT_ROLE])['name']

    with st.form("edit_user_form"):
        phone = st.text_input("Phone", value=selected.phone_number or "")
        role_name = st.selectbox("Role", list(role_names.keys()), index=list(role_names.keys()).index(current_role_name))
        update = st.form_submit_button("Save Changes")

    if update:
        updates = {'phone_number': phone.strip() or None, 'role': role_names[role_name]}
        try:
            db.update_user(selected.id, updates)
        except PortalError as e:
            utils.show_action_error(e)
        else:
            logger.info("Participant %s updated by %s", selected.id, current.id)
            st.success("Participant updated!")
            st.rerun()

    if selected.id == current.id:
        st.caption("You cannot remove yourself.")
        return

    confirm = st.checkbox(f"I understand that removing '{selected.name}' also deletes their introduction, photos and assignments.")
    if st.button("Remove Participant", disabled=not confirm):
        try:
            db.delete_user(selected.id)
        except PortalError as e:
            utils.show_action_error(e)
        else:
            logger.info("Participant %s removed by %s", selected.id, current.id)
            st.success("Participant removed.")
            st.rerun()

def render_notice_management(db):
    """Render the notice management section."""
    st.header("Notices")

    try:
        notices = db.get_notices()
    except PortalError as e:
        utils.show_action_error(e)
        return

    st.subheader("Post Notice")

    with st.form("new_notice_form", clear_on_submit=True):
        title = st.text_input("Title")
        content = st.text_area("Content", height=200)
        is_important = st.checkbox("Pin as important")
        submit = st.form_submit_button("Post Notice")

    if submit:
        if not title.strip() or not content.strip():
            st.error("Title and content are required.")
        else:
            try:
                db.create_notice(title.strip(), content.strip(), is_important)
            except PortalError as e:
                utils.show_action_error(e)
            else:
                st.success("Notice posted!")
                st.rerun()

    if not notices:
        st.info("No notices yet.")
        return

    st.subheader("Edit Notice")

    notice_options = {f"{'📌 ' if n.is_important else ''}{n.title} ({utils.format_timestamp(n.created_at)})": n for n in notices}
    selected_key = st.selectbox("Select notice", list(notice_options.keys()))
    selected = notice_options[selected_key]

    with st.form("edit_notice_form"):
        title = st.text_input("Title", value=selected.title)
        content = st.text_area("Content", value=selected.content, height=200)
        is_important = st.checkbox("Pin as important", value=selected.is_important)

        col1, col2 = st.columns(2)
        with col1:
            update = st.form_submit_button("Update Notice")
        with col2:
            delete = st.form_submit_button("Delete Notice")

    if update:
        if not title.strip() or not content.strip():
            st.error("Title and content are required.")
            return
        try:
            db.update_notice(selected.id, title.strip(), content.strip(), is_important)
        except PortalError as e:
            utils.show_action_error(e)
        else:
            st.success("Notice updated!")
            st.rerun()

    if delete:
        try:
            db.delete_notice(selected.id)
        except PortalError as e:
            utils.show_action_error(e)
        else:
            st.success("Notice deleted.")
            st.rerun()

def _participant_names(db):
    return [u.name for u in db.get_users()]

def _optional_index(options, value):
    return options.index(value) if value in options else 0

def render_bus_management(db):
    """Render the bus assignment section."""
    st.header("Bus Assignments")

    try:
        names = _participant_names(db)
        assignments = db.get_bus_assignments()
    except PortalError as e:
        utils.show_action_error(e)
        return

    stats = bus_statistics(assignments)
    columns = st.columns(len(config.BUS_NAMES) + 1)
    for column, bus in zip(columns, config.BUS_NAMES):
        with column:
            st.metric(bus, f"{stats['departure'][bus]} / {stats['return'][bus]}", help="departure / return")
    with columns[-1]:
        st.metric("Assigned", stats['total'])

    if assignments:
        st.dataframe(pd.DataFrame([vars(a) for a in assignments]).drop(columns=['id', 'user_id'], errors='ignore'),
                     hide_index=True)

    if not names:
        st.info("Add participants before assigning buses.")
        return

    st.subheader("Assign Bus")

    user_name = st.selectbox("Participant", names, key="bus_participant")
    existing = next((a for a in assignments if a.user_name == user_name), None)
    bus_options = [""] + config.BUS_NAMES

    with st.form("bus_form"):
        col1, col2 = st.columns(2)
        with col1:
            departure_bus = st.selectbox("Departure bus", bus_options,
                                         index=_optional_index(bus_options, existing and existing.departure_bus))
            departure_time = st.text_input("Departure time", value=(existing and existing.departure_time) or "")
            departure_location = st.text_input("Departure location", value=(existing and existing.departure_location) or "")
        with col2:
            return_bus = st.selectbox("Return bus", bus_options,
                                      index=_optional_index(bus_options, existing and existing.return_bus))
            return_time = st.text_input("Return time", value=(existing and existing.return_time) or "")
            arrival_location = st.text_input("Arrival location", value=(existing and existing.arrival_location) or "")
        notes = st.text_area("Notes", value=(existing and existing.notes) or "")

        col1, col2 = st.columns(2)
        with col1:
            save = st.form_submit_button("Save Assignment")
        with col2:
            remove = st.form_submit_button("Remove Assignment", disabled=existing is None)

    if save:
        try:
            db.assign_bus({
                'user_name': user_name,
                'departure_bus': departure_bus,
                'departure_time': departure_time,
                'departure_location': departure_location,
                'return_bus': return_bus,
                'return_time': return_time,
                'arrival_location': arrival_location,
                'notes': notes,
            })
        except PortalError as e:
            utils.show_action_error(e)
        else:
            st.success(f"Bus assignment saved for {user_name}.")
            st.rerun()

    if remove:
        try:
            db.remove_bus_assignment(user_name)
        except PortalError as e:
            utils.show_action_error(e)
        else:
            st.success(f"Bus assignment removed for {user_name}.")
            st.rerun()

def render_activity_management(db):
    """Render the activity program assignment section."""
    st.header("Activity Assignments")

    try:
        names = _participant_names(db)
        assignments = db.get_activity_assignments()
    except PortalError as e:
        utils.show_action_error(e)
        return

    stats = activity_statistics(assignments)
    columns = st.columns(len(config.ACTIVITY_PROGRAMS) + 1)
    for column, program in zip(columns, config.ACTIVITY_PROGRAMS):
        with column:
            st.metric(program, stats[program])
    with columns[-1]:
        st.metric("Assigned", stats['total'])

    if assignments:
        st.dataframe(pd.DataFrame([vars(a) for a in assignments]).drop(columns=['id', 'user_id'], errors='ignore'),
                     hide_index=True)

    if not names:
        st.info("Add participants before assigning activities.")
        return

    st.subheader("Assign Activity")

    user_name = st.selectbox("Participant", names, key="activity_participant")
    existing = next((a for a in assignments if a.user_name == user_name), None)

    with st.form("activity_form"):
        program_type = st.selectbox("Program", config.ACTIVITY_PROGRAMS,
                                    index=_optional_index(config.ACTIVITY_PROGRAMS, existing and existing.program_type))
        session_time = st.text_input("Session time", value=(existing and existing.session_time) or "")
        location = st.text_input("Location", value=(existing and existing.location) or "")
        notes = st.text_area("Notes", value=(existing and existing.notes) or "")

        col1, col2 = st.columns(2)
        with col1:
            save = st.form_submit_button("Save Assignment")
        with col2:
            remove = st.form_submit_button("Remove Assignment", disabled=existing is None)

    if save:
        try:
            db.assign_activity({
                'user_name': user_name,
                'program_type': program_type,
                'session_time': session_time,
                'location': location,
                'notes': notes,
            })
        except PortalError as e:
            utils.show_action_error(e)
        else:
            st.success(f"Activity saved for {user_name}.")
            st.rerun()

    if remove:
        try:
            db.remove_activity_assignment(user_name)
        except PortalError as e:
            utils.show_action_error(e)
        else:
            st.success(f"Activity removed for {user_name}.")
            st.rerun()
