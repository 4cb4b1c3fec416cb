from __future__ import annotations

import traceback
from typing import Optional

import streamlit as st

from thematic_coder.config import (
    APP_NAME,
    APP_VERSION,
    DEFAULT_REPORT_REQUEST,
    LOW_CONFIDENCE_THRESHOLD,
    SENTIMENTS,
)
from thematic_coder.core.classifier import GeminiClassificationClient
from thematic_coder.core.models import MergeMode
from thematic_coder.core.persistence import JsonStateStore
from thematic_coder.core.report import category_sentiment_counts
from thematic_coder.core.session import (
    AnalysisRunError,
    AnalysisSession,
    RunInProgressError,
)
from thematic_coder.core.tabular_parser import FormatError
from thematic_coder.core.taxonomy_store import TaxonomyError

PAGES = ["Codebook", "Analysis", "Report"]
MERGE_LABELS = {
    "Append to existing results": MergeMode.APPEND,
    "Replace existing results": MergeMode.REPLACE,
}

DARK_STYLE = """
<style>
.stApp, [data-testid="stHeader"] { background-color: #0e1117; color: #fafafa; }
[data-testid="stSidebar"] { background-color: #262730; }
.stApp h1, .stApp h2, .stApp h3, .stApp p, .stApp label, .stApp span { color: #fafafa; }
.stApp input, .stApp textarea { background-color: #1e1f26; color: #fafafa; }
</style>
"""


def appearance_style(appearance: str) -> str:
    """Markup to inject for the chosen appearance; light uses the stock theme."""
    return DARK_STYLE if appearance == "dark" else ""


def _get_session() -> AnalysisSession:
    if "session" not in st.session_state:
        st.session_state["session"] = AnalysisSession.from_storage(
            JsonStateStore(), client=GeminiClassificationClient()
        )
    return st.session_state["session"]


def _read_upload(uploaded) -> Optional[str]:
    if uploaded is None:
        return None
    return uploaded.getvalue().decode("utf-8-sig")


# ---------------------------------------------------------------------------
# Codebook page
# ---------------------------------------------------------------------------

def _render_codebook_page(session: AnalysisSession) -> None:
    store = session.store
    left, right = st.columns([1, 1])

    with left:
        st.subheader("Manage Codebooks")
        if store.names:
            current = store.active if store.active in store.names else store.names[0]
            choice = st.selectbox("Select Codebook", options=store.names, index=store.names.index(current))
            if choice != store.active:
                store.set_active(choice)

        with st.form("create_codebook", clear_on_submit=True):
            new_name = st.text_input("Or Create New Codebook", placeholder="New Codebook Name")
            if st.form_submit_button("Create"):
                try:
                    store.create(new_name)
                except TaxonomyError as exc:
                    st.error(str(exc))

        if store.active is None:
            st.info("Select a codebook to view its themes, or create a new one.")
            return

        st.subheader(f'Edit "{store.active}"')
        with st.form("add_category", clear_on_submit=True):
            name = st.text_input("Theme Name", placeholder="e.g., Customer Support")
            description = st.text_area("Theme Description", placeholder="e.g., Mentions of interacting with the support team.")
            if st.form_submit_button("Add Theme"):
                try:
                    store.add_category(name, description)
                except TaxonomyError as exc:
                    st.error(str(exc))

        st.markdown("**Bulk Upload**")
        st.caption("CSV with two columns: theme name, theme description.")
        uploaded = st.file_uploader("Upload CSV", type=["csv"], key="codebook_upload")
        text = _read_upload(uploaded)
        if text is not None and st.button("Import themes"):
            try:
                added = session.import_codebook(text)
                st.success(f"Imported {len(added)} new theme(s).")
            except (FormatError, TaxonomyError) as exc:
                st.error(f"Error parsing CSV file. Please ensure it is formatted correctly.\nDetails: {exc}")

        filename, content = session.export_codebook()
        st.download_button("Export codebook", data=content, file_name=filename, mime="text/csv")

        if st.button(f'Delete codebook "{store.active}"', type="secondary"):
            session.delete_taxonomy(store.active)
            st.rerun()

    with right:
        st.subheader(f"Current Codebook: {store.active}")
        categories = store.categories()
        if not categories:
            st.info("Add themes manually or upload a CSV to build this codebook.")
        for index, category in enumerate(categories):
            col_text, col_btn = st.columns([6, 1])
            with col_text:
                st.markdown(f"**{category.name}**  \n{category.description}")
            with col_btn:
                if st.button("✕", key=f"remove_category_{index}", help=f"Remove {category.name} theme"):
                    store.remove_category(index)
                    st.rerun()


# ---------------------------------------------------------------------------
# Analysis page
# ---------------------------------------------------------------------------

def _render_suggestion_approval(session: AnalysisSession) -> None:
    workflow = session.workflow
    st.subheader("Review suggested themes")
    st.caption("The model proposed new themes for some responses. Rejected ones are coded as Uncategorized.")

    for index, approval in enumerate(workflow.approvals):
        with st.container(border=True):
            st.write(f"Response: {approval.result.response_text}")
            approved = st.checkbox("Approve", value=approval.approved, key=f"suggestion_ok_{index}")
            name = st.text_input("Name", value=approval.name, key=f"suggestion_name_{index}")
            description = st.text_area("Description", value=approval.description, key=f"suggestion_desc_{index}")
            workflow.set_approved(index, approved)
            workflow.edit(index, name=name, description=description)

    col_finish, col_close = st.columns(2)
    with col_finish:
        if st.button("Finish", type="primary"):
            session.finish_suggestions()
            st.rerun()
    with col_close:
        if st.button("Close without saving"):
            session.abandon_suggestions()
            st.rerun()


def _render_results_table(session: AnalysisSession) -> None:
    results = session.results
    header_col, filter_col, download_col = st.columns([3, 2, 1])
    with header_col:
        st.subheader("Review Results")
    with filter_col:
        low_only = st.checkbox(f"Show low confidence only (<{LOW_CONFIDENCE_THRESHOLD:.0%})", value=False)
    with download_col:
        filename, content = session.export_results()
        st.download_button("Download CSV", data=content, file_name=filename, mime="text/csv", disabled=not results)

    if not results:
        st.info("Your coded responses will appear here.")
        return

    positions = [i for i, _ in session.low_confidence_results()] if low_only else list(range(len(results)))
    frame = results.to_frame().iloc[positions]
    frame.index = positions

    edited = st.data_editor(
        frame,
        use_container_width=True,
        disabled=["Response", "Confidence", "Reasoning"],
        column_config={
            "Assigned Category": st.column_config.SelectboxColumn(options=session.category_options()),
            "Sentiment": st.column_config.SelectboxColumn(options=list(SENTIMENTS)),
            "Confidence": st.column_config.NumberColumn(format="%.2f"),
        },
        key="results_editor",
    )
    for position in positions:
        row = edited.loc[position]
        current = results[position]
        if row["Assigned Category"] != current.category_name or row["Sentiment"] != current.sentiment:
            session.update_result(position, category_name=row["Assigned Category"], sentiment=row["Sentiment"])

    if st.button("Clear results"):
        session.clear_results()
        st.rerun()


def _render_analysis_page(session: AnalysisSession) -> None:
    if session.workflow.is_pending:
        _render_suggestion_approval(session)
        return

    st.subheader("Add Responses for Analysis")
    uploaded = st.file_uploader("Upload a CSV file (first line = column headers)", type=["csv"], key="responses_upload")
    text = _read_upload(uploaded)
    if text is not None and st.session_state.get("responses_upload_name") != uploaded.name:
        try:
            session.load_responses(text)
            st.session_state["responses_upload_name"] = uploaded.name
        except FormatError as exc:
            st.error(f"Error parsing CSV file. Please ensure it is formatted correctly.\nDetails: {exc}")

    if session.upload is not None:
        headers = session.upload.headers
        default = headers.index(session.response_column) if session.response_column in headers else None
        column = st.selectbox("Column containing the responses", options=headers, index=default)
        if column and column != session.response_column:
            session.select_response_column(column)
        with st.expander(f"Preview ({len(session.upload.rows)} rows)", expanded=False):
            st.dataframe(session.upload.to_frame().head(50), use_container_width=True)

    mode: Optional[MergeMode] = None
    if session.needs_merge_decision:
        label = st.radio("You already have results.", options=list(MERGE_LABELS), horizontal=True)
        mode = MERGE_LABELS[label]

    busy = session.classification_slot.busy
    ready = bool(session.store.categories()) and session.upload is not None and bool(session.response_column)
    if st.button("Coding..." if busy else "Code Responses", disabled=busy or not ready, type="primary"):
        try:
            with st.spinner("AI is analyzing your data..."):
                outcome = session.run_classification(mode)
            if outcome.needs_approval:
                st.rerun()
            st.success(f"Coded {outcome.finalized} response(s).")
        except (AnalysisRunError, RunInProgressError) as exc:
            st.error(str(exc))
        except Exception:
            st.error("Unexpected error while coding responses.")
            st.text_area("Traceback", value=traceback.format_exc(), height=220)

    _render_results_table(session)


# ---------------------------------------------------------------------------
# Report page
# ---------------------------------------------------------------------------

def _render_report_page(session: AnalysisSession) -> None:
    counts = category_sentiment_counts(session.results)
    if not counts.empty:
        st.subheader("Themes by sentiment")
        st.bar_chart(counts)

    chat_col, report_col = st.columns([1, 1])

    with chat_col:
        st.subheader("Ask about your data")
        for index, message in enumerate(session.chat_history):
            with st.chat_message("user" if message.role == "user" else "assistant"):
                st.write(message.text)
                if message.role == "model" and st.button("Add to report", key=f"add_to_report_{index}"):
                    session.add_to_report(message.text)
                    st.rerun()
        question = st.chat_input("Ask a question about your data...", disabled=session.chat_slot.busy)
        if question:
            session.ask(question)
            st.rerun()

    with report_col:
        st.subheader("Report")
        request = st.text_area("Report prompt", value=DEFAULT_REPORT_REQUEST, height=160)
        if st.button("Generate Report", disabled=session.report_slot.busy):
            try:
                with st.spinner("Generating..."):
                    session.generate_report(request)
            except (AnalysisRunError, RunInProgressError) as exc:
                st.error(str(exc))
        session.report_content = st.text_area(
            "Report content (editable)",
            value=session.report_content,
            height=400,
            placeholder="Your generated report will appear here. You can also edit it directly.",
        )
        if session.report_content:
            with st.expander("Preview", expanded=False):
                st.markdown(session.report_content)
            st.download_button("Download report", data=session.report_content, file_name="report.md", mime="text/markdown")


def run_app() -> None:
    st.set_page_config(page_title=APP_NAME, page_icon="🗂️", layout="wide")
    session = _get_session()

    with st.sidebar:
        st.title(APP_NAME)
        st.caption(f"Version {APP_VERSION}")
        page = st.radio("Page", options=PAGES, label_visibility="collapsed")
        if st.toggle("Dark mode", value=session.appearance == "dark") != (session.appearance == "dark"):
            session.toggle_appearance()

    style = appearance_style(session.appearance)
    if style:
        st.markdown(style, unsafe_allow_html=True)

    if page == "Codebook":
        _render_codebook_page(session)
    elif page == "Analysis":
        _render_analysis_page(session)
    else:
        _render_report_page(session)

    session.flush()
