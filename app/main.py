"""
Streamlit Frontend for SnapSplit

Photograph a receipt, tap who had what, and get everyone's share with
tax and tip split fairly.

DESIGN PRINCIPLES:
1. One screen per step: upload → assign → summary
2. Totals update immediately after every tap
3. Clear error messages in simple language
4. Nothing is stored; a reset really starts over

All state lives in a SplitSession kept in st.session_state. The page
only renders it and forwards user actions to it.
"""

import asyncio

import streamlit as st

from snapsplit.config import get_settings, validate_all_settings
from snapsplit.engine import format_amount, format_share_text, palette_hex, settle_to_cents
from snapsplit.orchestrator import (
    GENERIC_FAILURE_MESSAGE,
    ReceiptUploadFlow,
    SessionStep,
    SplitSession,
    create_app_components,
)
from snapsplit.validation import SplitInputValidator


# Page configuration
st.set_page_config(
    page_title="SnapSplit",
    page_icon="🧾",
    layout="centered",
    initial_sidebar_state="collapsed",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 6px;
    }
    .person-card {
        padding: 14px 18px;
        background-color: #f9fafb;
        border-radius: 10px;
        margin: 8px 0;
    }
    .big-number {
        font-size: 2.2em;
        font-weight: bold;
        color: #111827;
    }
</style>
""", unsafe_allow_html=True)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    return create_app_components()


def get_session() -> SplitSession:
    if "split_session" not in st.session_state:
        _, audit_logger = get_components()
        st.session_state.split_session = SplitSession(
            default_participant_name=get_settings().app.default_participant_name,
            audit_logger=audit_logger,
            validator=SplitInputValidator(get_settings().app.currency_symbol),
        )
    return st.session_state.split_session


def main():
    """Main application entry point."""
    upload_flow, _ = get_components()

    st.sidebar.title("🧾 SnapSplit")
    page = st.sidebar.radio(
        "Navigate to:",
        ["🧾 Split a Bill", "⚙️ Settings"],
        index=0,
    )
    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **How to use:**
        1. Upload a photo of the receipt
        2. Add your friends
        3. Pick a person, then tap what they had
        4. Enter tax and tip, then calculate
        """
    )

    if page == "⚙️ Settings":
        render_settings_page()
        return

    session = get_session()
    if session.step == SessionStep.PROCESSING:
        # a previous run stopped mid-scan
        session.fail(GENERIC_FAILURE_MESSAGE)

    if session.step == SessionStep.UPLOAD:
        render_upload_page(session, upload_flow)
    elif session.step == SessionStep.ASSIGNING:
        render_assignment_page(session)
    else:
        render_summary_page(session)


def render_upload_page(session: SplitSession, upload_flow: ReceiptUploadFlow):
    """Render the receipt upload step."""
    st.title("🧾 Split a Bill")
    st.markdown("Upload a photo of the receipt. We'll read the items for you.")

    if session.error:
        st.error(session.error)
        if st.button("Dismiss"):
            session.dismiss_error()
            st.rerun()

    app_settings = get_settings().app
    uploaded_file = st.file_uploader(
        "Choose a receipt photo",
        type=app_settings.supported_formats_list,
        help="Lay the receipt flat in good light",
    )

    if not uploaded_file or not st.button("🔍 Scan Receipt", type="primary"):
        return

    session.begin_processing()
    with st.spinner("Analyzing receipt..."):
        extracted, can_proceed, message = run_async(
            upload_flow.process_receipt(
                image_bytes=uploaded_file.getvalue(),
                filename=uploaded_file.name,
                mime_type=uploaded_file.type,
                correlation_id=session.correlation_id,
            )
        )

    if can_proceed:
        session.load_receipt(extracted)
        st.toast(message)
    else:
        session.fail(message)
    st.rerun()


def render_assignment_page(session: SplitSession):
    """Render the assignment step: roster, item list, extras."""
    symbol = get_settings().app.currency_symbol

    st.title("👥 Who had what?")

    # Roster
    names = {p.id: p.name for p in session.roster.participants}
    ids = list(names)
    active_index = ids.index(session.active_participant_id) if session.active_participant_id in ids else 0
    selected = st.radio(
        "Assigning for:",
        options=ids,
        index=active_index,
        format_func=lambda pid: names[pid],
        horizontal=True,
    )
    if selected != session.active_participant_id:
        session.select_participant(selected)
        st.rerun()

    with st.form("add_participant", clear_on_submit=True):
        new_name = st.text_input("Add a person", placeholder="Name")
        if st.form_submit_button("➕ Add") and new_name.strip():
            session.add_participant(new_name)
            st.rerun()

    st.markdown("---")

    # Items
    for item in session.items:
        assignees = session.allocation.assignees(item.id)
        tags = " ".join(
            f"<span style='color:{palette_hex(session.roster.get(pid).color)}'>●</span>"
            for pid in assignees
            if session.roster.get(pid)
        )
        col1, col2, col3 = st.columns([6, 2, 2])
        with col1:
            st.markdown(f"{item.description} {tags}", unsafe_allow_html=True)
        with col2:
            st.markdown(format_amount(item.price, symbol))
        with col3:
            label = "Remove" if session.allocation.is_assigned(item.id, session.active_participant_id) else "Add"
            if st.button(label, key=f"toggle-{item.id}"):
                session.toggle_item(item.id)
                st.rerun()

    st.markdown("---")

    # Extras
    col1, col2 = st.columns(2)
    with col1:
        tax = st.text_input("Tax", value=str(session.tax))
    with col2:
        tip = st.text_input("Tip", value=str(session.tip))

    if (tax, tip) != (str(session.tax), str(session.tip)):
        session.set_extras(tax, tip)

    # Live totals
    for breakdown in session.breakdown():
        st.markdown(f"**{breakdown.name}**: {format_amount(breakdown.final_total, symbol)}")

    result = session.validate()
    if result.warnings or result.has_errors:
        st.warning(session.validator.get_user_friendly_summary(result))

    if st.button("✅ Calculate Split", type="primary", disabled=result.has_errors):
        session.finish()
        st.rerun()


def render_summary_page(session: SplitSession):
    """Render the final per-person totals."""
    symbol = get_settings().app.currency_symbol
    summary = session.summary()
    settled = settle_to_cents(summary.breakdowns)

    st.title("💰 Summary")
    st.markdown(f"<div class='big-number'>{format_amount(summary.grand_total, symbol)}</div>",
                unsafe_allow_html=True)
    st.caption(
        f"Subtotal {format_amount(summary.receipt_subtotal, symbol)} · "
        f"Tax {format_amount(summary.tax, symbol)} · Tip {format_amount(summary.tip, symbol)}"
    )

    if summary.has_unassigned:
        st.warning(
            f"{len(summary.unassigned_items)} item(s) worth "
            f"{format_amount(summary.unassigned_subtotal, symbol)} were not assigned and are not split."
        )

    for breakdown in summary.breakdowns:
        color = palette_hex(breakdown.participant.color)
        st.markdown(f"""
        <div class="person-card" style="border-left: 5px solid {color};">
            <h4>{breakdown.name}: {format_amount(settled[breakdown.participant_id], symbol)}</h4>
        </div>
        """, unsafe_allow_html=True)
        with st.expander("Details"):
            for line in breakdown.line_items:
                st.markdown(f"- {line.label}: {format_amount(line.cost, symbol)}")
            st.markdown(f"- Tax & tip share: {format_amount(breakdown.extras_share, symbol)}")

    st.markdown("### Share")
    st.code(format_share_text(summary, currency_symbol=symbol), language=None)

    col1, col2 = st.columns(2)
    with col1:
        if st.button("✏️ Edit"):
            session.edit()
            st.rerun()
    with col2:
        if st.button("🔄 New Bill", type="primary"):
            session.reset()
            st.rerun()


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Gemini (Receipt Scanner)", "gemini"),
        ("App Configuration", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your API key. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
