"""
My Page for the Workshop Participant Portal: profile details and profile image.
"""
import streamlit as st
import logging
from errors import PortalError
import utils
import auth
import config

logger = logging.getLogger(__name__)

PROFILE_FIELDS = [
    ('name', "Name"),
    ('school', "School"),
    ('major', "Major"),
    ('generation', "Cohort"),
    ('gender', "Gender"),
    ('ws_group', "Group"),
    ('phone_number', "Phone"),
    ('status', "Status"),
    ('program', "Program"),
    ('birth_date', "Birth date"),
]

def profile_details(identity):
    """Label/value pairs for the filled-in profile fields, in display order."""
    details = [(label, getattr(identity, field)) for field, label in PROFILE_FIELDS if getattr(identity, field)]
    role = config.ROLES.get(identity.role or config.DEFAULT_ROLE)
    if role:
        details.append(("Role", role['name']))
    return details

@auth.requires_auth('view_portal')
def render_profile(db):
    """Render the participant's own profile."""
    st.title("My Page")

    user = auth.current_user()

    try:
        identity = db.get_identity_by_id(user.id)
    except PortalError as e:
        utils.show_action_error(e)
        return

    if identity is None:
        st.error("We could not find your participant record. Please sign in again.")
        return

    col1, col2 = st.columns([1, 2])

    with col1:
        render_profile_image(db, identity)

    with col2:
        st.subheader("Details")
        for label, value in profile_details(identity):
            st.markdown(f"**{label}:** {value}")

def render_profile_image(db, identity):
    if identity.profile_image_url:
        st.image(identity.profile_image_url, width=200)
    else:
        st.markdown("### 👤")
        st.caption("No profile image yet")

    with st.form("profile_image_form", clear_on_submit=True):
        upload_file = st.file_uploader("Profile image", type=["jpg", "jpeg", "png", "webp"])
        submit = st.form_submit_button("Upload")

    if submit:
        if upload_file is None:
            st.error("Please choose an image first.")
            return

        try:
            image_bytes = utils.resize_image(upload_file.getvalue(), config.MAX_PROFILE_IMAGE_SIZE_KB)
        except ValueError as e:
            st.error(str(e))
            return

        try:
            db.upload_profile_image(identity.id, image_bytes)
        except PortalError as e:
            utils.show_action_error(e)
            return

        logger.info("Profile image updated for participant %s", identity.id)
        st.rerun()

    if identity.profile_image_url:
        if st.button("Remove image", key="remove_profile_image"):
            try:
                db.delete_profile_image(identity.id)
            except PortalError as e:
                utils.show_action_error(e)
            else:
                logger.info("Profile image removed for participant %s", identity.id)
                st.rerun()
