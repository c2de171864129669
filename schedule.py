"""
Workshop schedule page.
"""
import html
import streamlit as st
from errors import PortalError
import utils
import auth

@auth.requires_auth('view_portal')
def render_schedule(db):
    """Render the schedule, one tab per day."""
    st.title("Schedule")

    try:
        events = db.get_events()
    except PortalError as e:
        utils.show_action_error(e)
        return

    if not events:
        st.info("The schedule has not been published yet.")
        return

    days = utils.group_events_by_date(events)
    tabs = st.tabs([f"Day {n} · {utils.format_event_date(day)}" for n, day in enumerate(days, 1)])

    for tab, (day, day_events) in zip(tabs, days.items()):
        with tab:
            for event in day_events:
                location = f" · 📍 {html.escape(event.location)}" if event.location else ""
                st.markdown(
                    f"<div class='event-card'><span class='event-time'>"
                    f"{utils.format_time(event.start_time)} - {utils.format_time(event.end_time)}</span>"
                    f"&nbsp;&nbsp;<b>{html.escape(event.title)}</b>{location}</div>",
                    unsafe_allow_html=True,
                )
                if event.description:
                    st.caption(event.description)
