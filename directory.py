"""
Attendee directory for the Workshop Participant Portal.
"""
import streamlit as st
from errors import PortalError
from introductions import render_introduction_card
import utils
import auth

@auth.requires_auth('view_portal')
def render_directory(db):
    """Render the attendee list with search and filters."""
    st.title("Attendee Directory")

    try:
        participants = db.get_users()
        introductions = {i.user_id: i for i in db.get_introductions()}
    except PortalError as e:
        utils.show_action_error(e)
        return

    if not participants:
        st.info("No participants found.")
        return

    schools = sorted({p.school for p in participants if p.school})
    majors = sorted({p.major for p in participants if p.major})

    col1, col2, col3 = st.columns([2, 1, 1])
    with col1:
        search = st.text_input("Search by name, school or major", key="directory_search")
    with col2:
        school = st.selectbox("School", ["All"] + schools, key="directory_school")
    with col3:
        major = st.selectbox("Major", ["All"] + majors, key="directory_major")

    matches = utils.filter_participants(
        participants,
        search=search,
        school=None if school == "All" else school,
        major=None if major == "All" else major,
    )

    st.write(f"Showing {len(matches)} of {len(participants)} participants")

    if not matches:
        st.info("No participants match your search.")
        return

    for participant in matches:
        introduction = introductions.get(participant.id)
        label = f"{participant.name} · {participant.summary()}"
        if introduction is None:
            st.markdown(f"- {label}")
            continue
        with st.expander(f"{label} 📝"):
            render_introduction_card(introduction)
