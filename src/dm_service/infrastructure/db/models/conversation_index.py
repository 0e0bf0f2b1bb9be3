from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, ForeignKey, String, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from dm_service.infrastructure.db.base import Base


class ConversationIndexModel(Base):
    """Latest message id per (actor, counterpart); one row per side of a conversation."""

    __tablename__ = "conversation_index"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    actor_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    counterpart_id: Mapped[str] = mapped_column(String(64), nullable=False)
    counterpart_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    conversation_key: Mapped[str] = mapped_column(String(255), nullable=False)
    last_message_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("messages.id", ondelete="CASCADE"),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=text("now()"),
        onupdate=text("now()"),
    )

    __table_args__ = (
        UniqueConstraint(
            "actor_kind",
            "actor_id",
            "counterpart_kind",
            "counterpart_id",
            name="uq_conversation_index_pair",
        ),
    )
