"""
Main application entry point for the Workshop Participant Portal.
"""
import streamlit as st
import logging
from database import Database
import auth
import utils
import schedule
import directory
import introductions
import notices
import assignments
import photos
import my_page
import dashboard
import data_manager
import admin
import config

logger = logging.getLogger(__name__)

# Navigation label -> (required permission, page)
PAGES = {
    "Schedule": ('view_portal', schedule.render_schedule),
    "Notices & FAQ": ('view_portal', notices.render_notices),
    "Directory": ('view_portal', directory.render_directory),
    "My Introduction": ('view_portal', introductions.render_introduction),
    "My Assignments": ('view_portal', assignments.render_assignments),
    "Photos": ('view_portal', photos.render_photos),
    "My Page": ('view_portal', my_page.render_profile),
    "Dashboard": ('view_dashboard', dashboard.render_dashboard),
    "Data Management": ('upload_data', data_manager.render_data_manager),
    "Administration": ('manage_users', admin.render_admin),
}

@st.cache_resource
def get_database():
    """One backend wrapper per server process."""
    return Database()

def navigation_options(permissions):
    """Pages the given permission list can open, in menu order."""
    return [label for label, (permission, _) in PAGES.items() if permission in permissions]

def main():
    """Main function to run the Streamlit app."""
    utils.configure_logging()

    st.set_page_config(
        page_title=config.APP_NAME,
        page_icon=config.APP_ICON,
        layout="wide",
    )
    utils.apply_custom_css()

    db = get_database()
    auth.init_auth()

    st.sidebar.title(config.APP_NAME)

    user = auth.current_user()
    if user is None:
        auth.display_login_form(db)
        return

    auth.display_user_info()
    auth.display_logout_button()

    nav_options = navigation_options(auth.get_permissions(db, user))

    if not nav_options:
        st.error("You don't have permissions to access any page.")
        return

    nav_selection = st.sidebar.radio("Navigation", nav_options)
    _, render_page = PAGES[nav_selection]
    logger.debug("Rendering %s for participant %s", nav_selection, user.id)
    render_page(db)

if __name__ == "__main__":
    main()
