from sqlalchemy import Column, Text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP
from sqlalchemy.sql import func

from leadbot.database import Base


class ConversationSession(Base):
    """Lead State for one (tenant, conversant) pair."""

    __tablename__ = "sessions"

    client_id = Column(Text, primary_key=True)
    wa_from = Column(Text, primary_key=True)
    lead = Column(JSONB, nullable=False, default=dict)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
