"""
Notices and FAQ pages.
"""
import html
import streamlit as st
from database import group_faqs_by_category
from errors import PortalError
import utils
import auth

def order_notices(notices):
    """Important notices first, newest first within each group."""
    by_date = sorted(notices, key=lambda n: n.created_at or "", reverse=True)
    return sorted(by_date, key=lambda n: not n.is_important)

@auth.requires_auth('view_portal')
def render_notices(db):
    """Render notices and the FAQ."""
    st.title("Notices")

    tabs = st.tabs(["Notices", "FAQ"])

    with tabs[0]:
        render_notice_list(db)

    with tabs[1]:
        render_faq(db)

def render_notice_list(db):
    try:
        notices = order_notices(db.get_notices())
    except PortalError as e:
        utils.show_action_error(e)
        return

    if not notices:
        st.info("No notices yet.")
        return

    for notice in notices:
        css_class = "notice-card important" if notice.is_important else "notice-card"
        badge = "📌 " if notice.is_important else ""
        body = html.escape(notice.content).replace("\n", "<br>")
        st.markdown(
            f"<div class='{css_class}'><b>{badge}{html.escape(notice.title)}</b><br>"
            f"<small>{utils.format_timestamp(notice.created_at)}</small><br><br>{body}</div>",
            unsafe_allow_html=True,
        )

def render_faq(db):
    try:
        faqs = db.get_faqs()
    except PortalError as e:
        utils.show_action_error(e)
        return

    if not faqs:
        st.info("No questions yet.")
        return

    for category, entries in group_faqs_by_category(faqs).items():
        st.subheader(category)
        for faq in entries:
            with st.expander(faq.question):
                st.write(faq.answer)
