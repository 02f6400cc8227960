"""Per-(tenant, conversant) Lead State and the append-only Lead Records.

Every operation is keyed by the conversation key ``(tenant_id, conversant_id)``.
``save_progress`` and ``complete_lead`` are single conditional writes that
never touch a confirmed state; ``complete_lead`` also appends the Lead Record
in the same transaction, so turns racing to finish one lead produce exactly
one record.
"""

import copy
import json
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy import text
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from leadbot.logging_config import get_logger
from leadbot.models import ConversationSession, Lead

logger = get_logger("conversation_store")

CONFIRMED_FLAG = "_confirmed"


@dataclass(frozen=True)
class LeadRecord:
    tenant_id: str
    conversant_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    need: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_state(cls, tenant_id: str, conversant_id: str, state: dict) -> "LeadRecord":
        return cls(
            tenant_id=tenant_id,
            conversant_id=conversant_id,
            name=state.get("name") or None,
            email=state.get("email") or None,
            need=state.get("need") or None,
        )


def is_confirmed(state: dict) -> bool:
    return bool(state.get(CONFIRMED_FLAG))


class ConversationStore(ABC):
    @abstractmethod
    def read(self, tenant_id: str, conversant_id: str) -> dict:
        """Return the stored Lead State, or ``{}`` when the key is absent."""

    @abstractmethod
    def upsert(self, tenant_id: str, conversant_id: str, state: dict) -> None:
        """Overwrite the Lead State wholesale (last writer wins)."""

    @abstractmethod
    def delete(self, tenant_id: str, conversant_id: str) -> None:
        pass

    @abstractmethod
    def save_progress(self, tenant_id: str, conversant_id: str, state: dict) -> bool:
        """Upsert ``state`` unless the stored state is already confirmed.

        Returns False, writing nothing, when a concurrent turn already confirmed the key.
        """

    @abstractmethod
    def complete_lead(self, tenant_id: str, conversant_id: str, state: dict) -> bool:
        """Store ``state`` as confirmed and append its Lead Record.

        Returns False, writing nothing, when the stored state is already confirmed.
        """

    @abstractmethod
    def list_leads(self, tenant_id: str) -> list[LeadRecord]:
        pass


class InMemoryConversationStore(ConversationStore):
    """Dict-backed store for tests and local runs without Postgres."""

    def __init__(self):
        self._states: dict[tuple[str, str], dict] = {}
        self._leads: list[LeadRecord] = []
        self._lock = threading.Lock()

    def read(self, tenant_id: str, conversant_id: str) -> dict:
        with self._lock:
            return copy.deepcopy(self._states.get((tenant_id, conversant_id), {}))

    def upsert(self, tenant_id: str, conversant_id: str, state: dict) -> None:
        with self._lock:
            self._states[(tenant_id, conversant_id)] = copy.deepcopy(state)

    def delete(self, tenant_id: str, conversant_id: str) -> None:
        with self._lock:
            self._states.pop((tenant_id, conversant_id), None)

    def save_progress(self, tenant_id: str, conversant_id: str, state: dict) -> bool:
        key = (tenant_id, conversant_id)
        with self._lock:
            if is_confirmed(self._states.get(key, {})):
                return False
            self._states[key] = copy.deepcopy(state)
            return True

    def complete_lead(self, tenant_id: str, conversant_id: str, state: dict) -> bool:
        key = (tenant_id, conversant_id)
        with self._lock:
            if is_confirmed(self._states.get(key, {})):
                return False
            confirmed = {**copy.deepcopy(state), CONFIRMED_FLAG: True}
            self._states[key] = confirmed
            self._leads.append(LeadRecord.from_state(tenant_id, conversant_id, confirmed))
            return True

    def list_leads(self, tenant_id: str) -> list[LeadRecord]:
        with self._lock:
            return [lead for lead in self._leads if lead.tenant_id == tenant_id]


_UNLESS_CONFIRMED_UPSERT = text(
    """
    INSERT INTO sessions (client_id, wa_from, lead, updated_at)
    VALUES (:client_id, :wa_from, CAST(:lead AS JSONB), NOW())
    ON CONFLICT (client_id, wa_from)
    DO UPDATE SET lead = EXCLUDED.lead, updated_at = NOW()
    WHERE COALESCE(CAST(sessions.lead ->> '_confirmed' AS BOOLEAN), FALSE) = FALSE
    RETURNING client_id
    """
)


class SqlConversationStore(ConversationStore):
    """Postgres-backed store (tables ``sessions`` and ``leads``)."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def read(self, tenant_id: str, conversant_id: str) -> dict:
        db = self._session_factory()
        try:
            row = (
                db.query(ConversationSession)
                .filter(ConversationSession.client_id == tenant_id, ConversationSession.wa_from == conversant_id)
                .first()
            )
            return dict(row.lead) if row and row.lead else {}
        finally:
            db.close()

    def upsert(self, tenant_id: str, conversant_id: str, state: dict) -> None:
        now = datetime.now(timezone.utc)
        stmt = insert(ConversationSession).values(
            client_id=tenant_id,
            wa_from=conversant_id,
            lead=state,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["client_id", "wa_from"],
            set_={"lead": stmt.excluded.lead, "updated_at": now},
        )
        db = self._session_factory()
        try:
            db.execute(stmt)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def delete(self, tenant_id: str, conversant_id: str) -> None:
        db = self._session_factory()
        try:
            db.query(ConversationSession).filter(
                ConversationSession.client_id == tenant_id,
                ConversationSession.wa_from == conversant_id,
            ).delete(synchronize_session=False)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    @staticmethod
    def _upsert_unless_confirmed(db: Session, tenant_id: str, conversant_id: str, state: dict) -> bool:
        row = db.execute(
            _UNLESS_CONFIRMED_UPSERT,
            {"client_id": tenant_id, "wa_from": conversant_id, "lead": json.dumps(state, ensure_ascii=False)},
        ).first()
        return row is not None

    def save_progress(self, tenant_id: str, conversant_id: str, state: dict) -> bool:
        db = self._session_factory()
        try:
            written = self._upsert_unless_confirmed(db, tenant_id, conversant_id, state)
            db.commit()
            return written
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def complete_lead(self, tenant_id: str, conversant_id: str, state: dict) -> bool:
        confirmed = {**state, CONFIRMED_FLAG: True}
        db = self._session_factory()
        try:
            if not self._upsert_unless_confirmed(db, tenant_id, conversant_id, confirmed):
                db.rollback()
                logger.info(
                    "Lead already confirmed, skipping record",
                    extra={"context": {"tenant_id": tenant_id, "conversant_id": conversant_id}},
                )
                return False

            db.add(
                Lead(
                    client_id=tenant_id,
                    wa_from=conversant_id,
                    name=confirmed.get("name") or None,
                    email=confirmed.get("email") or None,
                    need=confirmed.get("need") or None,
                )
            )
            db.commit()
            return True
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def list_leads(self, tenant_id: str) -> list[LeadRecord]:
        db = self._session_factory()
        try:
            rows = db.query(Lead).filter(Lead.client_id == tenant_id).order_by(Lead.id).all()
            return [
                LeadRecord(
                    tenant_id=row.client_id,
                    conversant_id=row.wa_from,
                    name=row.name,
                    email=row.email,
                    need=row.need,
                    created_at=row.created_at,
                )
                for row in rows
            ]
        finally:
            db.close()
