"""
Roster upload and schedule management for the Workshop Participant Portal.
"""
import streamlit as st
import pandas as pd
import datetime
import logging
from errors import PortalError
import utils
import auth

logger = logging.getLogger(__name__)

@auth.requires_auth('upload_data')
def render_data_manager(db):
    """Render the data manager page."""
    st.title("Data Management")

    tabs = st.tabs(["Upload Participants", "Manage Schedule", "Export Data"])

    with tabs[0]:
        render_upload_section(db)

    with tabs[1]:
        render_event_management(db)

    with tabs[2]:
        render_export_section(db)

def render_upload_section(db):
    """Render the participant roster upload section."""
    st.header("Upload Participant Roster")

    template_path = utils.create_roster_template()
    st.markdown(utils.get_download_link(template_path, "📥 Download Roster Template"), unsafe_allow_html=True)

    upload_file = st.file_uploader("Choose an Excel or CSV file", type=["xlsx", "csv"])

    if not upload_file:
        return

    try:
        if upload_file.name.endswith('.csv'):
            df = pd.read_csv(upload_file, dtype=str)
        else:
            df = pd.read_excel(upload_file, dtype=str)
    except (ValueError, OSError) as e:
        logger.warning("Could not read roster upload %s: %s", upload_file.name, e)
        st.error(f"Error reading file: {e}")
        return

    st.success(f"File uploaded successfully! Found {len(df)} records.")

    try:
        existing_names = [identity.name for identity in db.get_users()]
    except PortalError as e:
        utils.show_action_error(e)
        return

    is_valid, errors, warnings = utils.validate_uploaded_data(df, existing_names)

    if not is_valid:
        st.error("The uploaded data contains errors that must be fixed:")
        for error in errors:
            st.markdown(f"- {error}")
        return

    if warnings:
        st.warning("The uploaded data contains some warnings:")
        for warning in warnings:
            st.markdown(f"- {warning}")

    st.subheader("Data Preview (verify and edit before confirming)")
    df = st.data_editor(df)

    if st.button("Confirm Upload"):
        records = utils.prepare_data_for_db(df)
        with st.spinner("Creating participants..."):
            try:
                created = db.bulk_create_users(records)
            except PortalError as e:
                utils.show_action_error(e)
                return
        st.success(f"Successfully added {len(created)} participants!")

def _parse_time(value):
    return datetime.datetime.strptime(str(value)[:5], "%H:%M").time()

def render_event_management(db):
    """Render the schedule management section."""
    st.header("Manage Schedule")

    try:
        events = db.get_events()
    except PortalError as e:
        utils.show_action_error(e)
        return

    if events:
        events_df = pd.DataFrame([{
            'Date': e.event_date,
            'Start': utils.format_time(e.start_time),
            'End': utils.format_time(e.end_time),
            'Title': e.title,
            'Location': e.location or "",
            'Order': e.order_index,
        } for e in events])
        st.dataframe(events_df, hide_index=True)

        st.subheader("Edit or Delete")

        event_options = {f"{e.event_date} {utils.format_time(e.start_time)} · {e.title}": e for e in events}
        selected_key = st.selectbox("Select an entry", list(event_options.keys()))
        selected_event = event_options[selected_key]

        with st.form("edit_event_form"):
            title = st.text_input("Title", value=selected_event.title)
            event_date = st.date_input("Date", value=pd.to_datetime(selected_event.event_date).date())
            col1, col2 = st.columns(2)
            with col1:
                start_time = st.time_input("Start", value=_parse_time(selected_event.start_time))
            with col2:
                end_time = st.time_input("End", value=_parse_time(selected_event.end_time))
            location = st.text_input("Location", value=selected_event.location or "")
            description = st.text_area("Description", value=selected_event.description or "")
            order_index = st.number_input("Order", value=int(selected_event.order_index or 0), step=1)

            col1, col2 = st.columns(2)
            with col1:
                update_button = st.form_submit_button("Update Entry")
            with col2:
                delete_button = st.form_submit_button("Delete Entry")

        if update_button:
            if end_time <= start_time:
                st.error("The end time must be after the start time.")
            else:
                try:
                    db.update_event(selected_event.id, {
                        'title': title.strip(),
                        'event_date': event_date.strftime('%Y-%m-%d'),
                        'start_time': start_time.strftime('%H:%M'),
                        'end_time': end_time.strftime('%H:%M'),
                        'location': location.strip() or None,
                        'description': description.strip() or None,
                        'order_index': int(order_index),
                    })
                except PortalError as e:
                    utils.show_action_error(e)
                else:
                    st.success("Schedule entry updated!")
                    st.rerun()

        if delete_button:
            try:
                db.delete_event(selected_event.id)
            except PortalError as e:
                utils.show_action_error(e)
            else:
                st.success("Schedule entry deleted!")
                st.rerun()
    else:
        st.info("No schedule entries yet. Create one below.")

    st.subheader("Create Schedule Entry")

    with st.form("new_event_form", clear_on_submit=True):
        title = st.text_input("Title")
        event_date = st.date_input("Date")
        col1, col2 = st.columns(2)
        with col1:
            start_time = st.time_input("Start", value=datetime.time(9, 0))
        with col2:
            end_time = st.time_input("End", value=datetime.time(10, 0))
        location = st.text_input("Location")
        description = st.text_area("Description")
        order_index = st.number_input("Order", value=len(events), step=1)

        submit_button = st.form_submit_button("Create Entry")

    if submit_button:
        if not title.strip():
            st.error("Title is required.")
            return
        if end_time <= start_time:
            st.error("The end time must be after the start time.")
            return

        try:
            db.create_event(
                title,
                event_date.strftime('%Y-%m-%d'),
                start_time.strftime('%H:%M'),
                end_time.strftime('%H:%M'),
                location,
                description,
                int(order_index),
            )
        except PortalError as e:
            utils.show_action_error(e)
            return

        st.success(f"'{title}' added to the schedule!")
        st.rerun()

def render_export_section(db):
    """Render the data export section."""
    st.header("Export Data")

    export_choice = st.radio("Export:", ["Participants", "Introductions", "Room Occupancy"])

    try:
        if export_choice == "Participants":
            df = utils.participants_to_dataframe(db.get_users())
            filename_prefix = "participants"
        elif export_choice == "Introductions":
            df = pd.DataFrame([vars(i) for i in db.get_introductions()])
            filename_prefix = "introductions"
        else:
            df = pd.DataFrame(db.get_room_occupancy())
            filename_prefix = "room_occupancy"
    except PortalError as e:
        utils.show_action_error(e)
        return

    if len(df) == 0:
        st.info("No data available to export.")
        return

    st.success(f"Found {len(df)} rows.")
    st.dataframe(df, hide_index=True)

    st.markdown(utils.export_to_csv(df, f"{filename_prefix}.csv"), unsafe_allow_html=True)
    st.markdown(utils.export_to_excel(df, f"{filename_prefix}.xlsx"), unsafe_allow_html=True)
