"""Import all models so metadata.create_all can discover them via Base.metadata."""
from dm_service.infrastructure.db.models.conversation_index import ConversationIndexModel
from dm_service.infrastructure.db.models.message import MessageModel
from dm_service.infrastructure.db.models.outbox import OutboxMessageModel

__all__ = [
    "ConversationIndexModel",
    "MessageModel",
    "OutboxMessageModel",
]
