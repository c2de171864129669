"""
Photo gallery for the Workshop Participant Portal.
"""
import streamlit as st
import logging
from errors import PortalError
import utils
import auth
import config

logger = logging.getLogger(__name__)

GALLERY_COLUMNS = 3

def toggle_like(db, photo, user_id, liked_ids):
    """Like or unlike a photo. Returns True when the photo is liked afterwards."""
    if photo.id in liked_ids:
        db.unlike_photo(photo.id, user_id)
        return False
    db.like_photo(photo.id, user_id)
    return True

@auth.requires_auth('view_portal')
def render_photos(db):
    """Render the gallery and the upload form."""
    st.title("Photos")

    user = auth.current_user()

    tabs = st.tabs(["Gallery", "Upload"])

    with tabs[0]:
        render_gallery(db, user)

    with tabs[1]:
        render_upload(db, user)

def render_gallery(db, user):
    try:
        photos = db.get_photos()
        liked_ids = db.get_liked_photo_ids(user.id)
    except PortalError as e:
        utils.show_action_error(e)
        return

    if not photos:
        st.info("No photos yet. Be the first to share one!")
        return

    admin = auth.is_admin(db)
    columns = st.columns(GALLERY_COLUMNS)

    for index, photo in enumerate(photos):
        with columns[index % GALLERY_COLUMNS]:
            st.image(photo.image_url, use_container_width=True)
            st.caption(f"{photo.uploader_name or 'Unknown'} · {utils.format_timestamp(photo.uploaded_at)}")
            if photo.description:
                st.write(photo.description)

            heart = "❤️" if photo.id in liked_ids else "🤍"
            col1, col2 = st.columns(2)
            with col1:
                if st.button(f"{heart} {photo.likes_count}", key=f"like_{photo.id}"):
                    try:
                        toggle_like(db, photo, user.id, liked_ids)
                    except PortalError as e:
                        utils.show_action_error(e)
                    else:
                        st.rerun()
            with col2:
                if photo.user_id == user.id or admin:
                    if st.button("🗑️ Delete", key=f"delete_photo_{photo.id}"):
                        try:
                            db.delete_photo(photo)
                        except PortalError as e:
                            utils.show_action_error(e)
                        else:
                            logger.info("Photo %s deleted by %s", photo.id, user.id)
                            st.rerun()

def render_upload(db, user):
    with st.form("photo_upload_form", clear_on_submit=True):
        upload_file = st.file_uploader("Choose a photo", type=["jpg", "jpeg", "png", "webp"])
        description = st.text_input("Description (optional)")
        submit = st.form_submit_button("Upload")

    if not submit:
        return

    if upload_file is None:
        st.error("Please choose a photo first.")
        return

    with st.spinner("Uploading..."):
        try:
            image_bytes = utils.resize_image(upload_file.getvalue(), config.MAX_PHOTO_SIZE_KB)
        except ValueError as e:
            st.error(str(e))
            return

        try:
            db.upload_photo(user.id, image_bytes, description)
        except PortalError as e:
            utils.show_action_error(e)
            return

    st.success("Photo uploaded!")
    st.rerun()
