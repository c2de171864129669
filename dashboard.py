"""
Admin dashboard for the Workshop Participant Portal.
"""
import streamlit as st
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
from database import bus_statistics, activity_statistics
from errors import PortalError
import utils
import auth
import config

@auth.requires_auth('view_dashboard')
def render_dashboard(db):
    """Render the admin dashboard."""
    st.title("Dashboard")

    try:
        counts = db.get_counts()
        participants = db.get_users()
    except PortalError as e:
        utils.show_action_error(e)
        return

    render_overview_section(counts, participants)
    render_school_breakdown(participants)
    render_bus_section(db)
    render_activity_section(db)
    render_export_options(participants)

def render_overview_section(counts, participants):
    """Render the overview section with key metrics."""
    st.header("Overview")

    col1, col2, col3, col4 = st.columns(4)

    with col1:
        st.metric("Participants", counts.get('users', 0))

    with col2:
        st.metric("Schedule Entries", counts.get('events', 0))

    with col3:
        st.metric("Notices", counts.get('notices', 0))

    with col4:
        st.metric("Photos", counts.get('photos', 0))

    total = len(participants)
    registered = sum(1 for p in participants if p.is_registered)
    registration_percent = round((registered / total) * 100, 1) if total else 0

    st.metric("Registered with a PIN", f"{registered} / {total}")

    if total > 0:
        fig = go.Figure(go.Indicator(
            mode="gauge+number",
            value=registration_percent,
            title={'text': "Registration Percentage"},
            gauge={
                'axis': {'range': [0, 100]},
                'bar': {'color': config.PRIMARY_COLOR if registration_percent < 80 else config.SUCCESS_COLOR},
                'steps': [
                    {'range': [0, 50], 'color': "#ffcccb"},
                    {'range': [50, 80], 'color': "#ffffcc"},
                    {'range': [80, 100], 'color': "#ccffcc"},
                ]
            }
        ))

        fig.update_layout(height=250)
        st.plotly_chart(fig, use_container_width=True)

def render_school_breakdown(participants):
    """Render the school-wise breakdown section."""
    st.header("School Breakdown")

    if not participants:
        st.info("No participant data available.")
        return

    df = utils.participants_to_dataframe(participants)
    df['School'] = df['School'].fillna("Not Specified")
    df = (
        df.groupby('School')
        .agg(Participants=('Name', 'count'), Registered=('Registered', lambda s: (s == 'Yes').sum()))
        .reset_index()
        .sort_values('Participants', ascending=False)
    )
    df['Not Registered'] = df['Participants'] - df['Registered']

    if len(df) > 10:
        top_df = df.head(10)
        others_df = pd.DataFrame([{
            'School': 'Others',
            'Participants': df.iloc[10:]['Participants'].sum(),
            'Registered': df.iloc[10:]['Registered'].sum(),
            'Not Registered': df.iloc[10:]['Not Registered'].sum(),
        }])
        df = pd.concat([top_df, others_df])

    fig = px.bar(
        df,
        y='School',
        x=['Registered', 'Not Registered'],
        title='Participants by School',
        barmode='stack',
        orientation='h',
        color_discrete_map={
            'Registered': config.SUCCESS_COLOR,
            'Not Registered': config.WARNING_COLOR
        }
    )

    st.plotly_chart(fig, use_container_width=True)

def render_bus_section(db):
    """Render riders per bus for both directions."""
    st.header("Bus Assignments")

    try:
        assignments = db.get_bus_assignments()
    except PortalError as e:
        utils.show_action_error(e)
        return

    if not assignments:
        st.info("No bus assignments yet.")
        return

    stats = bus_statistics(assignments)
    data = []
    for bus in config.BUS_NAMES:
        data.append({'Bus': bus, 'Direction': 'Departure', 'Riders': stats['departure'][bus]})
        data.append({'Bus': bus, 'Direction': 'Return', 'Riders': stats['return'][bus]})

    fig = px.bar(pd.DataFrame(data), x='Bus', y='Riders', color='Direction', barmode='group',
                 title=f"Riders per Bus ({stats['total']} assigned)")
    st.plotly_chart(fig, use_container_width=True)

def render_activity_section(db):
    """Render participants per activity program."""
    st.header("Activity Programs")

    try:
        assignments = db.get_activity_assignments()
    except PortalError as e:
        utils.show_action_error(e)
        return

    if not assignments:
        st.info("No activity assignments yet.")
        return

    stats = activity_statistics(assignments)
    df = pd.DataFrame([{'Program': program, 'Participants': stats[program]} for program in config.ACTIVITY_PROGRAMS])
    st.plotly_chart(utils.create_chart('pie', df, "Participants per Program", 'Program', 'Participants'),
                    use_container_width=True)

def render_export_options(participants):
    """Render export options for the dashboard."""
    st.header("Export Reports")

    if not participants:
        st.info("No participant data available to export.")
        return

    df = utils.participants_to_dataframe(participants)
    st.success(f"Found {len(df)} participants.")

    st.markdown(utils.export_to_csv(df, "participants.csv"), unsafe_allow_html=True)
    st.markdown(utils.export_to_excel(df, "participants.xlsx"), unsafe_allow_html=True)
