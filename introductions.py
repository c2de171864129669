"""
Self-introduction page for the Workshop Participant Portal.
"""
import streamlit as st
import logging
from errors import PortalError, ValidationError
import utils
import auth

logger = logging.getLogger(__name__)

MAX_KEYWORDS = 3
MBTI_TYPES = [
    'INTJ', 'INTP', 'ENTJ', 'ENTP',
    'INFJ', 'INFP', 'ENFJ', 'ENFP',
    'ISTJ', 'ISFJ', 'ESTJ', 'ESFJ',
    'ISTP', 'ISFP', 'ESTP', 'ESFP',
]
TEXT_FIELDS = {
    'interests': "What are you into these days?",
    'bucketlist': "Bucket list",
    'stress_relief': "How do you relieve stress?",
    'foundation_activity': "What would you like to do through the foundation?",
}

def parse_keywords(text):
    """Split a comma separated keyword string, dropping blanks and repeats."""
    keywords = []
    for keyword in (text or '').split(','):
        keyword = keyword.strip()
        if keyword and keyword not in keywords:
            keywords.append(keyword)
    return keywords

def validate_introduction(data):
    """Check an introduction before saving. Returns the cleaned data."""
    cleaned = {key: (value.strip() if isinstance(value, str) else value) for key, value in data.items()}

    if not cleaned.get('name'):
        raise ValidationError("Please enter your name.")
    if cleaned.get('mbti') and cleaned['mbti'] not in MBTI_TYPES:
        raise ValidationError("Please choose a valid MBTI type.")

    keywords = parse_keywords(cleaned.get('keywords'))
    if not keywords:
        raise ValidationError("Add at least one keyword.")
    if len(keywords) > MAX_KEYWORDS:
        raise ValidationError(f"Use at most {MAX_KEYWORDS} keywords.")
    cleaned['keywords'] = ', '.join(keywords)

    for field, label in TEXT_FIELDS.items():
        if not cleaned.get(field):
            raise ValidationError(f"Please fill in '{label}'.")

    return cleaned

def save_introduction(db, store, user_id, data):
    """Validate and save an introduction, then refresh the session from the stored participant.

    Room, bus and activity lookups go by name, so a renamed participant must
    not keep the old name in their session.
    """
    introduction = db.save_introduction(user_id, validate_introduction(data))
    identity = db.get_identity_by_id(user_id)
    if identity is not None:
        store.sign_in(identity)
    return introduction

@auth.requires_auth('view_portal')
def render_introduction(db):
    """Render the page where participants write their introduction."""
    st.title("My Introduction")

    user = auth.current_user()

    try:
        existing = db.get_introduction(user.id)
    except PortalError as e:
        utils.show_action_error(e)
        return

    if existing is not None:
        st.info(f"Last saved: {utils.format_timestamp(existing.updated_at or existing.submitted_at)}")

    def _value(field, fallback=""):
        if existing is not None and getattr(existing, field):
            return getattr(existing, field)
        return fallback

    with st.form("introduction_form"):
        name = st.text_input("Name", value=_value('name', user.name))
        col1, col2 = st.columns(2)
        with col1:
            school = st.text_input("School", value=_value('school', user.school or ""))
        with col2:
            major = st.text_input("Major", value=_value('major', user.major or ""))

        col1, col2, col3 = st.columns(3)
        with col1:
            birth_date = st.text_input("Birth date", value=_value('birth_date'), placeholder="YYYY-MM-DD")
        with col2:
            location = st.text_input("Where do you live?", value=_value('location'))
        with col3:
            current_mbti = _value('mbti')
            options = [""] + MBTI_TYPES
            mbti = st.selectbox("MBTI", options, index=options.index(current_mbti) if current_mbti in options else 0)

        keywords = st.text_input(f"Keywords (up to {MAX_KEYWORDS}, comma separated)", value=_value('keywords'))

        answers = {}
        for field, label in TEXT_FIELDS.items():
            answers[field] = st.text_area(label, value=_value(field))

        submit = st.form_submit_button("Save Introduction")

    if submit:
        data = dict(answers, name=name, school=school, major=major, birth_date=birth_date,
                    location=location, mbti=mbti, keywords=keywords)
        try:
            save_introduction(db, auth.get_session_store(), user.id, data)
        except PortalError as e:
            utils.show_action_error(e)
            return

        logger.info("Introduction saved for participant %s", user.id)
        st.success("Your introduction has been saved!")
        st.rerun()

def render_introduction_card(introduction):
    """Show someone's introduction, read-only."""
    st.subheader(introduction.name or "Introduction")
    details = [introduction.school, introduction.major, introduction.location, introduction.mbti]
    st.caption(" · ".join(d for d in details if d))

    keywords = parse_keywords(introduction.keywords)
    if keywords:
        st.markdown(" ".join(f"`#{k}`" for k in keywords))

    for field, label in TEXT_FIELDS.items():
        value = getattr(introduction, field)
        if value:
            st.markdown(f"**{label}**")
            st.write(value)
