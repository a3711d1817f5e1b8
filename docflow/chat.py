"""
Documentation chat.

Sessions load previously generated docs for a repository as context; each
reply is generated from that context plus a trailing window of the
conversation. Without an AI client the service answers from a small set of
keyword-triggered canned responses instead of failing.
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path

from docflow.ai_client import AIClient
from docflow.models import ChatMessage, ChatSession, DocContext
from docflow.prompts import build_chat_prompt
from docflow.publisher import docs_directory
from docflow.sessions import SessionNotFound, SessionStore

logger = logging.getLogger("docflow.chat")

DOC_SUFFIXES = (".md", ".mdx")

# (trigger keywords, reply) checked in order; the last entry is the default
CANNED_RESPONSES: tuple[tuple[tuple[str, ...], str], ...] = (
    (
        ("setup", "install"),
        "To set up this project:\n"
        "1. Clone the repository\n"
        "2. Install the dependencies listed in the generated guide\n"
        "3. Configure environment variables\n"
        "4. Start the development server\n\n"
        "*Note: configure AI_API_KEY for AI-powered responses*",
    ),
    (
        ("api", "endpoint"),
        "This project includes several API endpoints. Check the generated "
        "documentation for the API reference, including endpoints, parameters "
        "and examples.\n\n*Note: configure AI_API_KEY for detailed API assistance*",
    ),
    (
        ("help", "how"),
        "I'm here to help with questions about this project! You can ask about:\n"
        "- Setup and installation\n"
        "- API endpoints and usage\n"
        "- Project structure\n"
        "- Development workflow\n\n"
        "*Note: configure AI_API_KEY for more detailed assistance*",
    ),
    (
        (),
        "I'd be happy to help! For detailed answers I need an AI service to be "
        "configured. For now, please check the generated documentation or ask "
        "about setup, API endpoints, or general project questions.\n\n"
        "*Tip: add AI_API_KEY to your .env file for full AI assistance*",
    ),
)


def fallback_response(message: str) -> str:
    lowered = message.lower()
    for keywords, reply in CANNED_RESPONSES:
        if not keywords or any(k in lowered for k in keywords):
            return reply
    return CANNED_RESPONSES[-1][1]


def load_documentation_context(docs_dir: str | Path, repository_id: str, max_chars: int = 2000) -> list[DocContext]:
    """Read ``*.md`` / ``*.mdx`` files mirrored for ``repository_id``.

    Best effort: a missing directory or unreadable file yields less context,
    never an error. Ids that do not map to a single directory directly under
    ``docs_dir`` (such as ``.`` or ``..``) load nothing.
    """
    root = docs_directory(docs_dir, repository_id)
    if root.resolve().parent != Path(docs_dir).resolve():
        logger.warning("Rejected repository id %r: outside the docs directory", repository_id)
        return []
    if not root.is_dir():
        logger.info("No generated docs for %s under %s", repository_id, root)
        return []

    context = []
    for path in sorted(root.rglob("*")):
        if not path.is_file() or path.suffix.lower() not in DOC_SUFFIXES:
            continue
        try:
            content = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.warning("Could not read %s: %s", path, exc)
            continue
        context.append(DocContext(file=path.relative_to(root).as_posix(), content=content[:max_chars]))
    logger.info("Loaded %d doc files as chat context for %s", len(context), repository_id)
    return context


class ChatService:
    def __init__(
        self,
        store: SessionStore,
        ai_client: AIClient | None,
        docs_dir: str | Path,
        history_window: int = 10,
        context_chars: int = 2000,
    ) -> None:
        self._store = store
        self._ai = ai_client
        self._docs_dir = docs_dir
        self._history_window = history_window
        self._context_chars = context_chars

    async def create_session(self, repository_id: str) -> ChatSession:
        context = load_documentation_context(self._docs_dir, repository_id, self._context_chars)
        session = await self._store.create(repository_id, context)
        logger.info("Created chat session %s for %s", session.id, repository_id)
        return session

    async def get_session(self, session_id: str) -> ChatSession:
        return await self._store.get(session_id)

    async def send_message(self, session_id: str, text: str) -> ChatMessage:
        """Append the user turn, generate a reply, append and return it.

        Raises SessionNotFound for an unknown id.
        """
        session = await self._store.get(session_id)
        prior = session.messages[-self._history_window:] if self._history_window > 0 else []
        history = [(m.role, m.content) for m in prior]

        await self._store.append(session_id, ChatMessage(id=uuid.uuid4().hex, role="user", content=text))

        if self._ai is None:
            content = fallback_response(text)
        else:
            content = await self._ai.generate(build_chat_prompt(session.context, history, text))

        reply = ChatMessage(id=uuid.uuid4().hex, role="assistant", content=content)
        await self._store.append(session_id, reply)
        return reply


__all__ = ["ChatService", "SessionNotFound", "fallback_response", "load_documentation_context"]
