"""
Streamlit Frontend for Transaction Hub

One page, four input surfaces:
1. AI SMS     - paste a bank notification
2. Receipt    - upload a photo of a receipt
3. Manual     - fill in a form
4. Statement  - upload a bank or card statement

DESIGN PRINCIPLES:
1. Every submission ends in a visible result or a clear error
2. The same account selector on every surface
3. No hidden actions - what was saved is shown with a link to its module
"""

import asyncio
from datetime import date

import streamlit as st

from transaction_hub.audit import configure_logging
from transaction_hub.config import get_settings, validate_all_settings
from transaction_hub.ledger import AccountLinkageResolver
from transaction_hub.models.transaction import (
    IngestionResult,
    IngestionStatus,
    ManualForm,
    ManualIngestion,
    ReceiptIngestion,
    SmsIngestion,
    StatementIngestion,
    TransactionType,
)
from transaction_hub.orchestrator import IngestionPipeline, create_app_components


# Page configuration
st.set_page_config(
    page_title="Transaction Hub",
    page_icon="🚀",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .success-box {
        padding: 20px;
        background-color: #d1fae5;
        border-radius: 10px;
        border-left: 5px solid #10b981;
        margin: 10px 0;
    }
    .warning-box {
        padding: 20px;
        background-color: #fff3cd;
        border-radius: 10px;
        border-left: 5px solid #ffc107;
        margin: 10px 0;
    }
    .badge {
        display: inline-block;
        padding: 4px 12px;
        border-radius: 999px;
        font-weight: 600;
    }
</style>
""", unsafe_allow_html=True)

BADGE_COLORS = {
    "yellow": "#fef3c7",
    "blue": "#dbeafe",
    "purple": "#ede9fe",
    "red": "#fee2e2",
    "emerald": "#d1fae5",
    "indigo": "#e0e7ff",
}

NO_ACCOUNT = ""


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
    configure_logging(debug=get_settings().app.debug_mode)
    try:
        return create_app_components(use_storage=True)
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        return create_app_components(use_storage=False)


def load_account_options(accounts) -> dict[str, str]:
    """Selector value -> label. Values are what the linkage resolver parses."""
    options = {NO_ACCOUNT: "No account"}
    if accounts is None:
        return options

    resolver = AccountLinkageResolver()
    try:
        linked = run_async(accounts.list_accounts())
    except Exception as e:
        st.warning(f"Could not load accounts: {e}")
        return options

    for account in linked:
        icon = "💳" if account.kind.value == "credit_card" else "🏦"
        label = f"{icon} {account.name}"
        if account.institution:
            label += f" ({account.institution})"
        options[resolver.encode(account.reference)] = label
    return options


def account_selector(options: dict[str, str], key: str, allow_none: bool = True) -> str:
    values = list(options) if allow_none else [v for v in options if v != NO_ACCOUNT]
    if not values:
        st.info("No accounts available yet.")
        return NO_ACCOUNT
    return st.selectbox(
        "Account",
        options=values,
        format_func=lambda v: options[v],
        key=key,
    )


def render_result(pipeline: IngestionPipeline, result: IngestionResult):
    """Show the outcome of one submission."""
    if result.status == IngestionStatus.FAILURE:
        st.error(f"❌ {result.message}")
        for item in result.rejected_items:
            st.caption(f"• {item}")
        return

    if result.status == IngestionStatus.PARTIAL:
        st.warning(f"⚠️ {result.message}")
    else:
        st.success(f"✅ {result.message}")

    for transaction in result.transactions:
        presentation = pipeline.present_result(transaction)
        badge = presentation.badge
        st.markdown(f"""
        <div class="success-box">
            <span class="badge" style="background-color: {BADGE_COLORS.get(badge.color, '#eee')}">
                {badge.emoji} {badge.label}
            </span>
            <p><b>Amount:</b> {transaction.currency} {transaction.amount:,.2f}</p>
            <p><b>Date:</b> {transaction.date.strftime('%d %B %Y')}</p>
            <p><b>Description:</b> {transaction.description or transaction.merchant or '-'}</p>
            <a href="{presentation.link}">View Details →</a>
        </div>
        """, unsafe_allow_html=True)

    if result.rejected_items:
        with st.expander(f"⚠️ {len(result.rejected_items)} line(s) not imported"):
            for item in result.rejected_items:
                st.markdown(f"- {item}")


def main():
    """Main application entry point."""
    pipeline, _, accounts = get_components()

    st.sidebar.title("🚀 Transaction Hub")
    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **Add transactions from:**
        - a bank SMS
        - a receipt photo
        - a statement file
        - the manual form

        Link an account to keep its balance up to date.
        """
    )
    render_settings_sidebar()

    options = load_account_options(accounts)

    sms_tab, receipt_tab, manual_tab, statement_tab = st.tabs(
        ["📱 AI SMS", "🧾 Receipt", "✍️ Manual", "📄 Statement"]
    )
    with sms_tab:
        render_sms_tab(pipeline, options)
    with receipt_tab:
        render_receipt_tab(pipeline, options)
    with manual_tab:
        render_manual_tab(pipeline, options)
    with statement_tab:
        render_statement_tab(pipeline, options)


def render_sms_tab(pipeline: IngestionPipeline, options: dict[str, str]):
    text = st.text_area(
        "Paste the SMS",
        placeholder="e.g., Your card ending 1234 was used for AED 85.50 at CARREFOUR on 01/03",
        key="sms_text",
    )
    account = account_selector(options, key="sms_account")

    if st.button("🔍 Analyze SMS", type="primary", key="sms_submit"):
        with st.spinner("Reading the SMS..."):
            result = run_async(pipeline.ingest(SmsIngestion(text=text, account=account or None)))
        render_result(pipeline, result)


def render_receipt_tab(pipeline: IngestionPipeline, options: dict[str, str]):
    uploaded_file = st.file_uploader(
        "Choose a receipt photo",
        type=["jpg", "jpeg", "png", "webp"],
        help="Take a clear, well-lit photo with the total visible",
        key="receipt_file",
    )
    account = account_selector(options, key="receipt_account")

    if uploaded_file and st.button("🔍 Analyze Receipt", type="primary", key="receipt_submit"):
        with st.spinner("Analyzing your receipt... Please wait."):
            result = run_async(pipeline.ingest(ReceiptIngestion(
                image_bytes=uploaded_file.getvalue(),
                filename=uploaded_file.name,
                account=account or None,
            )))
        render_result(pipeline, result)


def render_manual_tab(pipeline: IngestionPipeline, options: dict[str, str]):
    with st.form("manual_form"):
        col1, col2 = st.columns(2)
        with col1:
            amount = st.text_input("Amount", placeholder="0.00")
            transaction_type = st.selectbox(
                "Type",
                options=list(TransactionType),
                format_func=lambda t: t.value.title(),
            )
            entry_date = st.date_input("Date", value=date.today())
        with col2:
            description = st.text_input("Description")
            merchant = st.text_input("Merchant")
            account = account_selector(options, key="manual_account")

        submitted = st.form_submit_button("💾 Save Transaction", type="primary")

    if submitted:
        form = ManualForm(
            amount=amount,
            type=transaction_type,
            date=entry_date,
            description=description,
            merchant=merchant,
            account_id=account,
        )
        with st.spinner("Saving..."):
            result = run_async(pipeline.ingest(ManualIngestion(form=form)))
        render_result(pipeline, result)


def render_statement_tab(pipeline: IngestionPipeline, options: dict[str, str]):
    uploaded_file = st.file_uploader(
        "Choose a statement",
        type=["pdf", "csv", "xlsx"],
        key="statement_file",
    )
    account = account_selector(options, key="statement_account", allow_none=False)

    if uploaded_file and st.button("📤 Import Statement", type="primary", key="statement_submit"):
        with st.spinner("Reading the statement... This can take a while."):
            result = run_async(pipeline.ingest(StatementIngestion(
                file_bytes=uploaded_file.getvalue(),
                filename=uploaded_file.name,
                account_id=account or None,
            )))
        render_result(pipeline, result)


def render_settings_sidebar():
    """Connection status for each external service."""
    st.sidebar.markdown("---")
    st.sidebar.markdown("### Connection Status")

    status = validate_all_settings()
    services = [
        ("Mindee (Receipts)", "mindee"),
        ("Google Sheets (Storage)", "google_sheets"),
        ("Gemini (SMS & Statements)", "gemini"),
    ]
    for name, key in services:
        if status.get(key, False):
            st.sidebar.success(f"✅ {name}")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.sidebar.error(f"❌ {name} - {error}")


if __name__ == "__main__":
    main()
