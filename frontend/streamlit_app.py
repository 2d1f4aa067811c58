"""A Streamlit single-page chat UI for the Weather Chat API."""

import json
import os
import uuid

import requests
import streamlit as st

# --- Page and API Configuration ---
st.set_page_config(page_title="Weather Chat", page_icon="🌦️")
API_BASE = os.getenv("WEATHER_CHAT_API", "http://localhost:8000")
STREAM_TIMEOUT = 60


def get_api_session():
    """Gets the requests.Session object from streamlit's session state."""
    if "api_session" not in st.session_state:
        st.session_state.api_session = requests.Session()
    return st.session_state.api_session


def iter_events(response):
    """Yields the decoded JSON payload of each SSE data line until [DONE]."""
    for line in response.iter_lines(decode_unicode=True):
        if not line or not line.startswith("data:"):
            continue
        data = line[len("data:") :].strip()
        if data == "[DONE]":
            return
        yield json.loads(data)


def stream_reply(response, tool_calls):
    """Yields text deltas for st.write_stream, recording tool activity on the side."""
    for event in iter_events(response):
        kind = event.get("type")
        if kind == "content":
            yield event.get("delta", "")
        elif kind == "tool_call":
            tool_calls.append(
                f"{event.get('toolName')}({json.dumps(event.get('arguments', {}))})"
            )
        elif kind == "error":
            st.error(event.get("error", {}).get("message", "Stream error"), icon="🚨")


# --- Main App ---
st.title("🌦️ Weather Chat")
st.caption("Chat with a Gemini model that can look up the current weather.")

# --- API Health Check ---
try:
    health_response = get_api_session().get(f"{API_BASE}/health", timeout=3)
    if (
        health_response.status_code != 200
        or health_response.json().get("status") != "healthy"
    ):
        st.error(
            "API is not running or is unhealthy. Please start the backend server.",
            icon="🚨",
        )
        st.stop()
    if not health_response.json().get("api_key_configured"):
        st.warning("GEMINI_API_KEY is not configured on the server.", icon="⚠️")
except requests.exceptions.ConnectionError:
    st.error(
        "Could not connect to the API. Please ensure the backend server is running.",
        icon="🚨",
    )
    st.stop()

# --- Initialize Session State ---
if "messages" not in st.session_state:
    st.session_state.messages = []
if "conversation_id" not in st.session_state:
    st.session_state.conversation_id = str(uuid.uuid4())

with st.sidebar:
    st.caption(f"Conversation `{st.session_state.conversation_id}`")
    if st.button("New conversation", use_container_width=True):
        st.session_state.messages = []
        st.session_state.conversation_id = str(uuid.uuid4())
        st.rerun()

for message in st.session_state.messages:
    with st.chat_message(message["role"]):
        st.markdown(message["content"])
        for call in message.get("tools", []):
            st.caption(f"Tool: `{call}`")

if prompt := st.chat_input("Ask about the weather anywhere..."):
    st.session_state.messages.append({"role": "user", "content": prompt})
    with st.chat_message("user"):
        st.markdown(prompt)

    payload = {
        "messages": [
            {"role": m["role"], "content": m["content"]}
            for m in st.session_state.messages
        ],
        "conversationId": st.session_state.conversation_id,
    }

    with st.chat_message("assistant"):
        tool_calls = []
        try:
            response = get_api_session().post(
                f"{API_BASE}/api/chat", json=payload, stream=True, timeout=STREAM_TIMEOUT
            )
            if response.status_code == 200:
                reply = st.write_stream(stream_reply(response, tool_calls))
                for call in tool_calls:
                    st.caption(f"Tool: `{call}`")
            else:
                try:
                    error = response.json().get("error", response.text)
                except ValueError:
                    error = response.text
                reply = f"API Error: {response.status_code} - {error}"
                st.error(reply)
        except requests.exceptions.RequestException as e:
            reply = f"Request failed: {e}"
            st.error(reply)

    st.session_state.messages.append(
        {"role": "assistant", "content": reply or "", "tools": tool_calls}
    )
