# Run from project root: streamlit run nlsearch/ui.py
# UI talks to backend API (POST /api/query). The backend needs SOURCEGRAPH_TOKEN; the UI does not.

import os
import sys
from pathlib import Path
from urllib.parse import urlencode

# Ensure project root is on path (Streamlit may run with cwd != project root)
_root_from_file = Path(__file__).resolve().parent.parent
_cwd = os.getcwd()
for _root in (_root_from_file, _cwd):
    _root = str(_root)
    if _root not in sys.path:
        sys.path.insert(0, _root)

import streamlit as st
import requests

from nlsearch.core.config import API_BASE, QUERY_TIMEOUT, SOURCEGRAPH_URL

EXAMPLES = [
    "Find Go functions that return an error and take a context.Context",
    "TODO comments in TypeScript files of the sourcegraph repo",
    "Python files importing requests but not httpx",
    "Recent commits that touched the search query parser",
]

st.title("Natural Language Code Search")
st.caption(f"Describe what you are looking for; Deep Search on {SOURCEGRAPH_URL} turns it into a search query.")

try:
    r = requests.get(f"{API_BASE}/health", timeout=5)
    if not r.ok:
        st.caption("Backend health check failed.")
except requests.RequestException:
    st.caption(f"Cannot reach the backend at {API_BASE}. Is the API running?")

if "query_text" not in st.session_state:
    st.session_state.query_text = ""


# Widget state can only be changed from callbacks, before the text input is drawn
def _use_example(example: str) -> None:
    st.session_state.query_text = example


def _clear() -> None:
    st.session_state.query_text = ""
    st.session_state.pop("result", None)


with st.expander("Examples"):
    for i, example in enumerate(EXAMPLES):
        st.button(example, key=f"example_{i}", on_click=_use_example, args=(example,))

query = st.text_input("What do you want to search for?", key="query_text")
col_search, col_clear = st.columns(2)
search_clicked = col_search.button("Search", key="search_btn", disabled=not query.strip())
col_clear.button("Clear", key="clear_btn", on_click=_clear)

if search_clicked:
    with st.spinner("Asking Deep Search (this can take up to a minute)..."):
        try:
            r = requests.post(
                f"{API_BASE}/api/query",
                json={"query": query.strip()},
                # Backend gives up after QUERY_TIMEOUT; leave room for the response
                timeout=QUERY_TIMEOUT + 30,
            )
            try:
                st.session_state.result = r.json()
            except ValueError:
                st.session_state.result = {"error": f"HTTP {r.status_code}: {r.text[:200]}"}
        except requests.RequestException as e:
            st.session_state.result = {"error": f"Network error: {e}"}

result = st.session_state.get("result")
if result:
    if result.get("error"):
        st.error(result["error"])
    else:
        answer = result.get("answer", "")
        st.subheader("Generated Search Query")
        st.code(answer, language=None)
        search_url = f"{SOURCEGRAPH_URL}/search?{urlencode({'q': answer})}"
        st.markdown(f"[Run this search on Sourcegraph]({search_url})")
        sources = result.get("sources") or []
        if sources:
            with st.expander(f"Sources ({len(sources)})"):
                for s in sources:
                    st.json(s)
