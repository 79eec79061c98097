"""Flat JSON session registry, e.g. ``~/.agent-wallet/sessions.json``.

The file maps session topic to :class:`Session`. Each CLI invocation opens
one :class:`SessionStore`, reads it, and writes it back at most once.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from agent_wallet.errors import SessionNotFound
from agent_wallet.storage.models import Session, utc_now_iso

logger = logging.getLogger("agent_wallet.storage.sessions")


class SessionStore:
    """Load/save sessions from a JSON file.

    Parameters
    ----------
    path:
        Location of the registry file. Parent directories are created on
        the first write.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> dict[str, Session]:
        """Return all sessions. A missing or unreadable file yields ``{}``."""
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(f"Ignoring unreadable session file {self.path}: {exc}")
            return {}
        sessions: dict[str, Session] = {}
        for topic, raw in (data or {}).items():
            try:
                sessions[topic] = Session.model_validate(raw)
            except ValidationError as exc:
                logger.warning(f"Skipping invalid session {topic[:12]}...: {exc}")
        return sessions

    def save_all(self, sessions: dict[str, Session]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {topic: s.to_json_dict() for topic, s in sessions.items()}
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def save(self, topic: str, session: Session) -> Session:
        """Insert or replace one session, stamping ``updatedAt``."""
        sessions = self.load()
        stored = session.model_copy(update={"updated_at": utc_now_iso()})
        sessions[topic] = stored
        self.save_all(sessions)
        return stored

    def delete(self, topic: str) -> Optional[Session]:
        """Remove a session. Returns the removed session, or ``None``."""
        sessions = self.load()
        removed = sessions.pop(topic, None)
        if removed is not None:
            self.save_all(sessions)
            logger.info(f"Session {topic[:12]}... deleted.")
        return removed

    def get(self, topic: str) -> Optional[Session]:
        return self.load().get(topic)

    def require(self, topic: str) -> Session:
        session = self.get(topic)
        if session is None:
            raise SessionNotFound("Session not found", topic=topic)
        return session

    def find_by_address(self, address: str) -> Optional[tuple[str, Session]]:
        """Most recently updated session holding *address* (case-insensitive)."""
        matches = [(t, s) for t, s in self.load().items() if s.has_address(address)]
        if not matches:
            return None
        return max(matches, key=lambda item: item[1].last_seen)

    def latest(self) -> Optional[tuple[str, Session]]:
        sessions = self.load()
        if not sessions:
            return None
        return max(sessions.items(), key=lambda item: item[1].last_seen)

    def resolve_topic(self, topic: str | None = None, address: str | None = None) -> str:
        """Pick a topic from an explicit topic or a wallet address.

        Raises :class:`SessionNotFound` when neither identifies a session.
        """
        if topic:
            return topic
        if address:
            match = self.find_by_address(address)
            if match is None:
                raise SessionNotFound("No session found for address", address=address)
            return match[0]
        raise SessionNotFound("--topic or --address required")
