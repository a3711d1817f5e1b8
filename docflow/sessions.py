"""
In-memory chat session store.

A dict guarded by an ``asyncio.Lock``; sessions live for the process
lifetime and are never evicted or persisted.
"""

from __future__ import annotations

import asyncio
import uuid

from docflow.models import ChatMessage, ChatSession, DocContext


class SessionNotFound(LookupError):
    """No session exists with the given id."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class SessionStore:
    """Async-safe keyed map of chat sessions."""

    def __init__(self) -> None:
        self._sessions: dict[str, ChatSession] = {}
        self._lock = asyncio.Lock()

    async def create(self, repository_id: str, context: list[DocContext] | None = None) -> ChatSession:
        session = ChatSession(
            id=str(uuid.uuid4()),
            repository_id=repository_id,
            context=context or [],
        )
        async with self._lock:
            self._sessions[session.id] = session
        return session

    async def get(self, session_id: str) -> ChatSession:
        async with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    async def append(self, session_id: str, message: ChatMessage) -> ChatSession:
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFound(session_id)
            session.messages.append(message)
            return session

    async def clear(self) -> None:
        async with self._lock:
            self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)
