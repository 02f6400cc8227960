from sqlalchemy import BigInteger, Column, Text
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.sql import func

from leadbot.database import Base


class Lead(Base):
    __tablename__ = "leads"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    client_id = Column(Text, nullable=False)
    wa_from = Column(Text, nullable=False)
    name = Column(Text)
    email = Column(Text)
    need = Column(Text)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
