"""
Authentication for the Workshop Participant Portal.

Participants sign in through the directory flow in ``directory_auth``; this
module wires that flow and the ``SessionStore`` into Streamlit.
"""
from functools import wraps

import streamlit as st

import config
from directory_auth import (
    AwaitingPin,
    Authenticated,
    CredentialGate,
    Flow,
    LoginIdentitySelected,
    NoIdentitySelected,
    RegisteringPhoneCheck,
)
from errors import PortalError, TransportError
from session_store import SessionStore


def init_auth():
    """Create the tab's session store on first run and reconcile it on every rerun."""
    if 'session_store' not in st.session_state:
        st.session_state.session_store = SessionStore(st.session_state)
    else:
        st.session_state.session_store.get_current_session()

    if 'sign_in_error' not in st.session_state:
        st.session_state.sign_in_error = None


def get_session_store():
    init_auth()
    return st.session_state.session_store


def current_user():
    """The signed-in participant, or None."""
    return get_session_store().current


def get_role(db, user):
    """Re-read the participant's role from the backend. The cached session is not trusted for this."""
    if user is None:
        return None
    try:
        identity = db.get_identity_by_id(user.id)
    except TransportError:
        return None
    if identity is None:
        return None
    return identity.role or config.DEFAULT_ROLE


def is_admin(db):
    return get_role(db, current_user()) == 'admin'


def get_permissions(db, user):
    participant_permissions = config.ROLES[config.DEFAULT_ROLE]['permissions']
    role = get_role(db, user)
    if role not in config.ROLES:
        return participant_permissions
    return config.ROLES[role]['permissions']


def requires_auth(permission=None):
    """Decorator to enforce sign-in and permission requirements on a page.

    The decorated page takes the ``Database`` as its first argument.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(db, *args, **kwargs):
            init_auth()
            user = current_user()

            if user is None:
                display_login_form(db)
                return None

            if permission and permission not in config.ROLES[config.DEFAULT_ROLE]['permissions']:
                if permission not in get_permissions(db, user):
                    st.error("You do not have permission to access this page.")
                    return None

            return func(db, *args, **kwargs)
        return wrapper
    return decorator


def get_gate(db):
    store = get_session_store()
    gate = st.session_state.get('sign_in_gate')
    if gate is None or gate.session_store is not store:
        gate = CredentialGate(db, store)
        st.session_state.sign_in_gate = gate
    return gate


def _attempt(action, *args):
    """Run one gate step, keeping its message for the next rerun."""
    try:
        action(*args)
    except PortalError as e:
        st.session_state.sign_in_error = e.message
        return False

    st.session_state.sign_in_error = None
    return True


def _start_over(gate):
    gate.start_over()
    st.session_state.sign_in_error = None
    for key in ('sign_in_name', 'sign_in_last_query', 'sign_in_phone', 'sign_in_pin', 'sign_in_pin_confirm'):
        st.session_state.pop(key, None)


def display_login_form(db):
    """Display the directory sign-in form for the current gate state."""
    gate = get_gate(db)
    state = gate.state

    st.markdown("## Participant Sign-in 🔒")

    # filled last so errors raised while rendering this run still show
    error_slot = st.empty()

    if isinstance(state, NoIdentitySelected) and state.flow is None:
        _render_choose_flow(gate)
    elif isinstance(state, (NoIdentitySelected, RegisteringPhoneCheck, LoginIdentitySelected)):
        _render_identity_step(gate)
    elif isinstance(state, AwaitingPin):
        _render_pin_step(gate, state)
    elif isinstance(state, Authenticated):
        st.session_state.sign_in_notice = f"Welcome, {state.user.name}!"
        _start_over(gate)
        st.rerun()

    if not (isinstance(state, NoIdentitySelected) and state.flow is None):
        if st.button("Start over", key="sign_in_start_over"):
            _start_over(gate)
            st.rerun()

    if st.session_state.get('sign_in_error'):
        error_slot.error(st.session_state.sign_in_error)


def _render_choose_flow(gate):
    col1, col2 = st.columns(2)
    with col1:
        if st.button("Register as participant", use_container_width=True):
            _attempt(gate.choose_flow, Flow.REGISTER)
            st.rerun()
    with col2:
        if st.button("Login", use_container_width=True):
            _attempt(gate.choose_flow, Flow.LOGIN)
            st.rerun()

    st.info("First time here? Choose **Register as participant**. You will confirm your "
            f"registered phone number and then set a {config.PIN_LENGTH}-digit PIN.")


def _render_identity_step(gate):
    registering = gate.flow is Flow.REGISTER
    st.subheader("Participant registration" if registering else "Login")

    name = st.text_input("Name", key="sign_in_name", placeholder="Type your name and press Enter")
    if name and name != st.session_state.get('sign_in_last_query'):
        st.session_state.sign_in_last_query = name
        _attempt(gate.search, name)

    selected = gate.selected
    if selected is not None:
        st.success(f"**{selected.name}** · {selected.summary()}")
    elif gate.candidates:
        st.caption("Select your name:")
        for candidate in gate.candidates:
            label = f"{candidate.name} · {candidate.summary()}"
            if st.button(label, key=f"sign_in_pick_{candidate.id}"):
                _attempt(gate.select_identity, candidate.id)
                st.rerun()
    elif name:
        st.info("No participants found with that name.")

    if registering:
        phone = st.text_input("Phone number", key="sign_in_phone", placeholder="010-1234-5678 or 01012345678")
        if st.button("Verify participant", type="primary"):
            if _attempt(gate.submit_phone, phone):
                st.session_state.pop('sign_in_last_query', None)
            st.rerun()
    else:
        if st.button("Next", type="primary"):
            if _attempt(gate.submit_login):
                st.session_state.pop('sign_in_last_query', None)
            st.rerun()


def _render_pin_step(gate, state):
    identity = state.identity
    st.info(f"Hello, **{identity.name}**! {identity.summary()}")

    label = f"Set a {config.PIN_LENGTH}-digit PIN" if state.is_new else f"{config.PIN_LENGTH}-digit PIN"
    with st.form("sign_in_pin_form"):
        pin = st.text_input(label, type="password", max_chars=config.PIN_LENGTH, key="sign_in_pin")
        confirmation = None
        if state.is_new:
            confirmation = st.text_input("Confirm PIN", type="password", max_chars=config.PIN_LENGTH,
                                         key="sign_in_pin_confirm")
        submit = st.form_submit_button("Complete registration" if state.is_new else "Login")

    if submit:
        if _attempt(gate.submit_pin, pin, confirmation):
            st.session_state.sign_in_notice = f"Welcome, {identity.name}!"
        st.rerun()


def display_logout_button():
    """Display a logout button if a participant is signed in."""
    store = get_session_store()
    if store.is_authenticated:
        if st.sidebar.button("Logout"):
            store.sign_out()
            st.session_state.pop('sign_in_gate', None)
            st.rerun()


def display_user_info():
    """Display the signed-in participant."""
    user = current_user()
    if user is not None:
        notice = st.session_state.pop('sign_in_notice', None)
        if notice:
            st.sidebar.success(notice)
        st.sidebar.write(f"Signed in as: **{user.name}**")
        role = config.ROLES.get(user.role or config.DEFAULT_ROLE, config.ROLES[config.DEFAULT_ROLE])
        st.sidebar.write(f"Role: **{role['name']}**")
