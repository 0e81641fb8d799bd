"""Session store for MCP connections."""

import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import AsyncIterator

from form_master.services.api_client import FormMasterClient
from form_master.services.session import FormSession

logger = logging.getLogger("form-master-mcp")

DEFAULT_SESSION = "_default"

# Key: session_id or "_default", Value: FormSession
form_sessions: dict[str, FormSession] = {}

# Set per SSE connection from its session_id query parameter
current_session_id: ContextVar[str | None] = ContextVar("current_session_id", default=None)


def get_form_session(session_id: str | None = None) -> FormSession:
    """Get the FormSession for a connection, creating it on first use."""
    key = session_id or current_session_id.get() or DEFAULT_SESSION
    session = form_sessions.get(key)
    if session is None:
        session = FormSession(FormMasterClient(), session_id=key)
        form_sessions[key] = session
        logger.info(f"Created form session {key}")
    return session


async def close_form_session(session_id: str | None = None) -> bool:
    """Close and forget a session. Returns False when there was none."""
    session = form_sessions.pop(session_id or current_session_id.get() or DEFAULT_SESSION, None)
    if session is None:
        return False
    await session.close()
    await session.client.aclose()
    return True


@asynccontextmanager
async def connection_session(session_id: str | None) -> AsyncIterator[None]:
    """
    Bind a connection to its session id for the duration of the connection.

    The session is closed when the connection ends, whether or not the
    client called close_session first.
    """
    if not session_id:
        yield
        return

    token = current_session_id.set(session_id)
    try:
        yield
    finally:
        current_session_id.reset(token)
        if await close_form_session(session_id):
            logger.info(f"Closed form session {session_id} on disconnect")
