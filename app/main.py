"""
Streamlit Frontend for Ecodin

Personal-finance tracker: record income and expenses, watch the totals
update, and ask for an AI summary of the month's spending.

DESIGN PRINCIPLES:
1. Every figure on screen is recomputed from the latest snapshot
2. Validation problems are shown next to the form, never as crashes
3. AI features degrade quietly: no suggestion, or a friendly message
4. Quota usage is always visible next to the summary button
"""

import asyncio
from datetime import datetime, time, timezone
from decimal import Decimal

import streamlit as st

from ecodin.analytics import PRESET_LABELS, DateRangePreset, custom_range, resolve_preset
from ecodin.config import get_settings, validate_all_settings
from ecodin.models import (
    EXPENSE_CATEGORIES,
    DashboardSnapshot,
    Transaction,
    TransactionInput,
    TransactionType,
)
from ecodin.orchestrator import AppComponents, create_app_components
from ecodin.services.storage import subscribe_while_alive
from ecodin.validation import MAX_NAME_LENGTH


# Page configuration
st.set_page_config(
    page_title="Ecodin",
    page_icon="💰",
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
    .big-number {
        font-size: 2.2em;
        font-weight: bold;
        color: #2c3e50;
    }
    .income { color: #28a745; }
    .expense { color: #dc3545; }
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
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    return create_app_components(use_storage=True)


def format_brl(value) -> str:
    """R$ 1.234,56"""
    text = f"{Decimal(str(value)):,.2f}"
    return "R$ " + text.replace(",", "_").replace(".", ",").replace("_", ".")


class SessionTransactions:
    """Latest snapshot for one browser session; listeners hold it weakly."""

    def __init__(self):
        self.transactions: list[Transaction] = []


def store_snapshot(box: SessionTransactions, transactions: list[Transaction]) -> None:
    box.transactions = transactions


def ensure_subscription(components: AppComponents, user_id: str) -> None:
    """Keep this session's SessionTransactions in sync with the store."""
    if st.session_state.get("subscribed_user") == user_id:
        return

    previous = st.session_state.get("subscription")
    if previous is not None:
        previous.unsubscribe()

    # Pushes can arrive on another session's script thread, so write to this
    # session's own box instead of st.session_state.
    box = SessionTransactions()
    st.session_state.snapshot_box = box
    st.session_state.subscription = subscribe_while_alive(
        components.transaction_storage, user_id, box, store_snapshot
    )
    st.session_state.subscribed_user = user_id
    st.session_state.summary_outcome = None


def current_transactions() -> list[Transaction]:
    box = st.session_state.get("snapshot_box")
    return box.transactions if box is not None else []


def suggestion_session(components: AppComponents):
    """One debounce session per browser session."""
    if "suggestion_session" not in st.session_state:
        st.session_state.suggestion_session = components.summary_flow.new_suggestion_session()
    return st.session_state.suggestion_session


def main():
    """Main application entry point."""
    components = get_components()
    app_settings = get_settings().app

    # Sidebar navigation
    st.sidebar.title("💰 Ecodin")
    st.sidebar.markdown("---")

    user_id = st.sidebar.text_input("Usuário", value="demo").strip() or "demo"
    ensure_subscription(components, user_id)

    page = st.sidebar.radio(
        "Navegar para:",
        ["📊 Painel", "📈 Relatórios", "⚙️ Configurações"],
        index=0,
    )

    st.sidebar.markdown("---")
    if components.uses_sheets:
        st.sidebar.caption("Dados no Google Sheets")
        if st.sidebar.button("🔄 Atualizar dados"):
            components.transaction_storage.refresh(user_id)
    else:
        st.sidebar.warning("Modo local: os dados ficam em memória até o app reiniciar.")

    # Route to appropriate page
    if page == "📊 Painel":
        render_dashboard_page(components, user_id, app_settings)
    elif page == "📈 Relatórios":
        render_reports_page(components)
    elif page == "⚙️ Configurações":
        render_settings_page(components)


def select_date_range(key: str, default: DateRangePreset):
    """Preset picker with a custom option; returns a DateRange or None on bad input."""
    options = list(DateRangePreset) + ["custom"]
    choice = st.selectbox(
        "Período",
        options=options,
        index=options.index(default),
        format_func=lambda x: "Personalizado" if x == "custom" else PRESET_LABELS[x],
        key=f"{key}_preset",
    )
    if choice != "custom":
        return resolve_preset(choice)

    picked = st.date_input("De / até", value=[], key=f"{key}_custom")
    if len(picked) != 2:
        st.info("Escolha a data inicial e a final.")
        return None
    try:
        return custom_range(picked[0], picked[1])
    except ValueError:
        st.error("A data inicial deve ser anterior à final.")
        return None


def render_totals(snapshot: DashboardSnapshot):
    col1, col2, col3 = st.columns(3)
    with col1:
        st.markdown("**Renda**")
        st.markdown(f'<div class="big-number income">{format_brl(snapshot.totals.income)}</div>', unsafe_allow_html=True)
    with col2:
        st.markdown("**Despesas**")
        st.markdown(f'<div class="big-number expense">{format_brl(snapshot.totals.expenses)}</div>', unsafe_allow_html=True)
    with col3:
        st.markdown("**Saldo**")
        st.markdown(f'<div class="big-number">{format_brl(snapshot.totals.balance)}</div>', unsafe_allow_html=True)


def render_transaction_form(components: AppComponents, user_id: str):
    """Add form, or edit form when a transaction is selected for editing."""
    editing = st.session_state.get("editing")
    initial = TransactionInput.from_transaction(editing) if editing else TransactionInput()

    st.subheader("✏️ Editar transação" if editing else "➕ Nova transação")

    tx_type = st.radio(
        "Tipo",
        options=[TransactionType.EXPENSE.value, TransactionType.INCOME.value],
        index=0 if initial.type == TransactionType.EXPENSE.value else 1,
        format_func=lambda x: "Despesa" if x == TransactionType.EXPENSE.value else "Renda",
        horizontal=True,
    )

    def on_name_change():
        name = st.session_state.get("tx_name", "")
        suggestion = run_async(
            components.summary_flow.suggest_category(name, session=suggestion_session(components))
        )
        if suggestion is not None:
            st.session_state.tx_category = suggestion.value

    st.session_state.setdefault("tx_name", initial.name)
    name = st.text_input(
        "Nome",
        key="tx_name",
        max_chars=MAX_NAME_LENGTH,
        on_change=on_name_change,
    )
    amount = st.number_input(
        "Valor (R$)",
        min_value=0.0,
        value=float(initial.amount or 0),
        step=10.0,
        format="%.2f",
    )

    category = None
    if tx_type == TransactionType.EXPENSE.value:
        labels = [c.value for c in EXPENSE_CATEGORIES]
        st.session_state.setdefault(
            "tx_category",
            initial.category if initial.category in labels else labels[-1],
        )
        category = st.selectbox("Categoria", options=labels, key="tx_category")

    tx_date = st.date_input(
        "Data",
        value=(initial.date or datetime.now(timezone.utc)).date(),
    )

    raw = TransactionInput(
        type=tx_type,
        name=name,
        amount=amount,
        category=category,
        date=datetime.combine(tx_date, time(12, 0), tzinfo=timezone.utc),
    )

    col1, col2 = st.columns(2)
    with col1:
        label = "💾 Salvar alterações" if editing else "➕ Adicionar"
        if st.button(label, type="primary"):
            if editing:
                result = run_async(components.transaction_flow.edit(user_id, editing.id, raw))
            else:
                result = run_async(components.transaction_flow.add(user_id, raw))

            if result.ok:
                st.session_state.flash = result.message
                stop_editing()
                st.rerun()
            else:
                st.error(result.message)
    with col2:
        if editing:
            st.button("Cancelar", on_click=stop_editing)


def start_editing(tx: Transaction) -> None:
    st.session_state.editing = tx
    st.session_state.tx_name = tx.name
    if not tx.is_income:
        st.session_state.tx_category = tx.category.value


def stop_editing() -> None:
    st.session_state.editing = None
    st.session_state.pop("tx_name", None)
    st.session_state.pop("tx_category", None)


def render_transaction_list(components: AppComponents, user_id: str, snapshot: DashboardSnapshot):
    st.subheader("📋 Transações")
    if not snapshot.transactions:
        st.info("Nenhuma transação neste período.")
        return

    for tx in reversed(snapshot.transactions):
        col1, col2, col3, col4 = st.columns([4, 2, 1, 1])
        with col1:
            st.markdown(f"**{tx.name}**  \n{tx.category.value} · {tx.date.strftime('%d/%m/%Y')}")
        with col2:
            css = "income" if tx.is_income else "expense"
            sign = "+" if tx.is_income else "-"
            st.markdown(f'<span class="{css}">{sign} {format_brl(tx.amount)}</span>', unsafe_allow_html=True)
        with col3:
            st.button("✏️", key=f"edit_{tx.id}", on_click=start_editing, args=(tx,))
        with col4:
            if st.button("🗑️", key=f"delete_{tx.id}"):
                result = run_async(components.transaction_flow.delete(user_id, tx.id))
                if result.ok:
                    st.rerun()
                st.error(result.message)


def render_summary(components: AppComponents, user_id: str, snapshot: DashboardSnapshot):
    st.subheader("🤖 Resumo com IA")

    usage = run_async(components.summary_flow.usage(user_id))
    exhausted = usage is not None and usage.exhausted
    if usage is None:
        st.caption("Não foi possível consultar o uso de resumos agora.")
    else:
        st.caption(f"Resumos usados este mês: {usage.used} de {usage.limit}")

    if st.button("Gerar resumo", disabled=exhausted):
        with st.spinner("Analisando seus gastos..."):
            st.session_state.summary_outcome = run_async(
                components.summary_flow.generate(
                    user_id,
                    snapshot.transactions,
                    savings_goal=snapshot.savings_goal,
                )
            )
    if exhausted:
        st.warning(
            f"Você atingiu seu limite de {usage.limit} resumos de IA para este mês. "
            "Para resumos ilimitados, considere o plano Pro."
        )

    outcome = st.session_state.get("summary_outcome")
    if outcome is None:
        return
    if outcome.generated:
        st.markdown(outcome.summary.summary)
        if outcome.summary.suggestions:
            st.markdown("**Sugestões**")
            for suggestion in outcome.summary.suggestions:
                st.markdown(f"- {suggestion}")
    else:
        st.warning(outcome.message)


def render_dashboard_page(components: AppComponents, user_id: str, app_settings):
    """Render the dashboard page."""
    st.title("📊 Painel")

    flash = st.session_state.pop("flash", None)
    if flash:
        st.success(flash)

    col1, col2 = st.columns([1, 2])
    with col1:
        date_range = select_date_range("dashboard", DateRangePreset.THIS_MONTH)
    with col2:
        goal = st.slider(
            "Meta de economia (R$)",
            min_value=1,
            max_value=app_settings.max_savings_goal,
            value=app_settings.default_savings_goal,
            step=50,
        )

    if date_range is None:
        return

    transactions = current_transactions()
    snapshot = components.dashboard_flow.snapshot(transactions, date_range, goal)

    render_totals(snapshot)

    st.markdown("**Progresso da meta**")
    progress = snapshot.savings_progress or Decimal("0")
    st.progress(min(float(progress), 100.0) / 100)
    st.caption(f"{progress:.0f}% de {format_brl(goal)}")

    st.markdown("---")
    left, right = st.columns(2)
    with left:
        render_transaction_form(components, user_id)
    with right:
        st.subheader("🏷️ Despesas por categoria")
        if snapshot.ranked_categories:
            st.bar_chart(
                {
                    "Categoria": [c.value for c, _ in snapshot.ranked_categories],
                    "Valor": [float(v) for _, v in snapshot.ranked_categories],
                },
                x="Categoria",
                y="Valor",
            )
        else:
            st.info("Sem despesas neste período.")

    st.markdown("---")
    render_summary(components, user_id, snapshot)

    st.markdown("---")
    render_transaction_list(components, user_id, snapshot)


def render_reports_page(components: AppComponents):
    """Render the reports page."""
    st.title("📈 Relatórios")

    date_range = select_date_range("reports", DateRangePreset.THIS_YEAR)
    if date_range is None:
        return

    transactions = current_transactions()
    snapshot = components.dashboard_flow.snapshot(transactions, date_range)

    render_totals(snapshot)
    st.markdown("---")

    st.subheader("Tendência mensal")
    if not snapshot.monthly_series:
        st.info("Nenhuma transação neste período.")
        return

    st.line_chart(
        {
            "Mês": [point.month_key for point in snapshot.monthly_series],
            "Renda": [float(point.income) for point in snapshot.monthly_series],
            "Despesa": [float(point.expense) for point in snapshot.monthly_series],
        },
        x="Mês",
        y=["Renda", "Despesa"],
    )


def render_settings_page(components: AppComponents):
    """Render the settings page."""
    st.title("⚙️ Configurações")

    st.markdown("### Status das conexões")

    status = validate_all_settings()

    services = [
        ("Google Sheets (Armazenamento)", "google_sheets"),
        ("Gemini (IA)", "gemini"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configurado")
        else:
            error = status.get(f"{key}_error", "Não configurado")
            st.error(f"❌ {name} - {error}")

    if not components.uses_sheets:
        st.info("Sem Google Sheets: as transações ficam em memória até o app reiniciar.")

    st.markdown("---")
    st.markdown("### Configuração")
    st.markdown(
        "Para configurar o aplicativo, crie um arquivo `.env` com suas chaves. "
        "Veja `.env.example` para as variáveis necessárias."
    )

if __name__ == "__main__":
    main()
