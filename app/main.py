"""
Streamlit Frontend for Mèo Mập

A thin shell over the ledger core. Every rule (locking, routing by month,
import parsing, analysis fallbacks) lives in expense_ledger; this page
only collects input and shows state.

DESIGN PRINCIPLES:
1. Show the lock state before offering any edit control
2. Import problems appear once, as a notice, never as a crash
3. The advice card always has something to show
"""

import asyncio
from datetime import date, datetime, time
from decimal import Decimal

import streamlit as st

from expense_ledger.exports import build_event_export, build_personal_export, record_export
from expense_ledger.imports import ImportFailedError, SheetSourceError
from expense_ledger.models.ledger import (
    CATEGORIES,
    CategoryType,
    ExpenseDraft,
    GroupEventDraft,
    Mood,
    Theme,
    ViewMode,
)
from expense_ledger.orchestrator import AppComponents, DeleteFlow, create_app_components
from expense_ledger.queries import label_breakdown, sort_by_date
from expense_ledger.store import LedgerStore


# Page configuration
st.set_page_config(
    page_title="Mèo Mập",
    page_icon="🐱",
    layout="centered",
)

MOOD_FACES = {
    Mood.HAPPY: "😸",
    Mood.CONCERNED: "🙀",
    Mood.NEUTRAL: "😽",
}


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


def format_money(amount: Decimal) -> str:
    return f"{amount:,.0f}".replace(",", ".") + " ₫"


def main():
    """Main application entry point."""
    components = get_components()
    store = components.store

    render_sidebar(components)
    render_unreadable_notice(store)

    if store.mode == ViewMode.GROUP:
        render_group_header(store)
    else:
        render_month_header(store)

    render_summary(store)
    render_advice(components)
    render_expense_form(store)
    render_expense_list(store)


def render_unreadable_notice(store: LedgerStore):
    if not store.unreadable_blobs:
        return
    st.error(
        "Không đọc được dữ liệu đã lưu. Mèo Mập sẽ không ghi đè file cũ "
        "cho tới khi bạn đồng ý bỏ nó (hãy sao lưu file trước)."
    )
    if st.button("Bỏ dữ liệu hỏng và tiếp tục lưu"):
        store.discard_unreadable()
        st.rerun()


# ===== SIDEBAR =====

def render_sidebar(components: AppComponents):
    store = components.store

    st.sidebar.title("🐱 Mèo Mập")

    mode = st.sidebar.radio(
        "Chế độ",
        [ViewMode.PERSONAL, ViewMode.GROUP],
        index=0 if store.mode == ViewMode.PERSONAL else 1,
        format_func=lambda m: "Cá nhân" if m == ViewMode.PERSONAL else "Nhóm",
    )
    if mode != store.mode:
        store.switch_mode(mode)
        st.rerun()

    dark = st.sidebar.toggle("Giao diện tối", value=store.theme == Theme.DARK)
    if dark != (store.theme == Theme.DARK):
        store.toggle_theme()

    st.sidebar.markdown("---")
    st.sidebar.subheader("📥 Nhập dữ liệu")
    uploaded = st.sidebar.file_uploader("File .json hoặc .csv", type=["json", "csv"])
    if uploaded and st.sidebar.button("Nhập file"):
        try:
            result = components.import_pipeline.import_upload(uploaded.name, uploaded.getvalue())
        except ImportFailedError as e:
            st.sidebar.error(f"Không đọc được file: {e}")
        else:
            if result.nothing_imported:
                st.sidebar.warning("Không tìm thấy khoản chi hợp lệ nào trong file.")
            else:
                st.sidebar.success(f"Đã nhập {result.imported} khoản chi.")

    if components.sheets_source and st.sidebar.button("Nhập từ Google Sheets"):
        try:
            result = run_async(components.import_pipeline.import_sheet(components.sheets_source))
        except (ImportFailedError, SheetSourceError) as e:
            st.sidebar.error(f"Không đọc được Google Sheets: {e}")
        else:
            st.sidebar.success(f"Đã nhập {result.imported} khoản chi.")

    st.sidebar.markdown("---")
    st.sidebar.subheader("📤 Xuất dữ liệu")
    if store.mode == ViewMode.GROUP and store.active_event:
        bundle = build_event_export(store.active_event)
    else:
        bundle = build_personal_export(store)
    # Built on every rerun; audited only when actually downloaded
    st.sidebar.download_button(
        "Tải bản sao lưu",
        data=bundle.data,
        file_name=bundle.filename,
        mime="application/json",
        on_click=record_export,
        args=(components.audit_logger, bundle),
    )


# ===== HEADERS =====

def render_month_header(store: LedgerStore):
    prev_col, title_col, next_col = st.columns([1, 3, 1])
    if prev_col.button("◀"):
        store.change_month(-1)
        st.rerun()
    if next_col.button("▶"):
        store.change_month(1)
        st.rerun()

    year, month = store.current_month.split("-")
    title_col.markdown(f"### Tháng {int(month)}/{year}")

    locked = store.is_current_locked()
    label = "🔓 Mở khoá tháng" if locked else "🔒 Chốt sổ tháng"
    if st.button(label):
        store.toggle_lock()
        st.rerun()


def render_group_header(store: LedgerStore):
    events = store.group_events

    with st.expander("➕ Tạo sự kiện nhóm", expanded=not events):
        with st.form("new_event"):
            name = st.text_input("Tên sự kiện")
            start = st.date_input("Ngày bắt đầu", value=date.today())
            members = st.text_input("Thành viên (cách nhau bởi dấu phẩy)")
            if st.form_submit_button("Tạo") and name.strip():
                event = store.create_group_event(GroupEventDraft(name=name, start_date=start))
                store.select_event(event.id)
                for member in filter(None, (m.strip() for m in members.split(","))):
                    store.add_member(member)
                st.rerun()

    if not events:
        st.info("Chưa có sự kiện nhóm nào.")
        return

    ids = [event.id for event in events]
    names = {event.id: event.name for event in events}
    current = store.active_event_id if store.active_event_id in ids else ids[0]
    selected = st.selectbox("Sự kiện", ids, index=ids.index(current), format_func=names.get)
    if selected != store.active_event_id:
        store.select_event(selected)
        st.rerun()

    event = store.active_event
    st.caption("Thành viên: " + (", ".join(m.name for m in event.members) or "chưa có"))
    label = "📂 Mở lại sự kiện" if event.is_archived else "📦 Lưu trữ sự kiện"
    if st.button(label):
        store.toggle_lock()
        st.rerun()


# ===== SUMMARY / ADVICE =====

def render_summary(store: LedgerStore):
    summary = store.current_summary()
    st.metric("Tổng chi", format_money(summary.total), help=f"{summary.count} khoản")
    if summary.remaining_budget is not None:
        st.caption(f"Còn lại trong ngân sách: {format_money(summary.remaining_budget)}")

    breakdown = label_breakdown(store.current_expenses())
    if breakdown:
        st.bar_chart({label: float(amount) for label, amount in breakdown.items()})


def render_advice(components: AppComponents):
    flow = components.analysis_flow
    advice = flow.latest

    st.markdown(f"#### {MOOD_FACES[advice.mood]} Mèo Mập nói")
    st.write(f"\"{advice.message}\"")

    expenses = components.store.current_expenses()
    if st.button("Hỏi Mèo Mập", disabled=flow.busy or not expenses):
        with st.spinner("Mèo Mập đang suy nghĩ..."):
            run_async(flow.request_analysis(expenses))
        st.rerun()


# ===== EXPENSES =====

def render_expense_form(store: LedgerStore):
    if store.is_current_locked():
        st.warning("Đã chốt sổ, không thể thêm hoặc xoá chi tiêu.")
        return
    if store.mode == ViewMode.GROUP and store.active_event is None:
        return

    with st.form("add_expense", clear_on_submit=True):
        amount = st.number_input("Số tiền", min_value=0, step=1000)
        note = st.text_input("Ghi chú")
        category = st.selectbox(
            "Danh mục",
            list(CategoryType),
            format_func=lambda c: f"{CATEGORIES[c].icon} {CATEGORIES[c].label}",
        )
        spent_on = st.date_input("Ngày", value=date.today())
        if st.form_submit_button("Thêm") and amount > 0:
            store.add_expense(ExpenseDraft(
                amount=Decimal(str(amount)),
                note=note,
                category=category,
                date=datetime.combine(spent_on, time(hour=12)),
            ))
            st.rerun()


def render_expense_list(store: LedgerStore):
    expenses = sort_by_date(store.current_expenses())
    if not expenses:
        st.info("Chưa có khoản chi nào.")
        return

    flow = st.session_state.setdefault("delete_flow", DeleteFlow(store))
    locked = store.is_current_locked()
    for expense in expenses:
        info = CATEGORIES[expense.category]
        text_col, amount_col, action_col = st.columns([4, 2, 1])
        text_col.markdown(f"{info.icon} **{expense.note}**  \n{expense.date:%d/%m/%Y}")
        amount_col.markdown(format_money(expense.amount))
        if locked:
            continue
        if flow.pending == expense.id:
            st.warning(f"Xóa khoản chi “{expense.note}”?")
            yes_col, no_col = st.columns(2)
            if yes_col.button("Xóa", key=f"confirm-{expense.id}", type="primary"):
                flow.confirm(expense.id)
                st.rerun()
            if no_col.button("Hủy", key=f"cancel-{expense.id}"):
                flow.cancel()
                st.rerun()
        elif action_col.button("🗑", key=f"delete-{expense.id}"):
            flow.request(expense.id)
            st.rerun()


if __name__ == "__main__":
    main()
