from leadbot.models.conversation_session import ConversationSession
from leadbot.models.lead import Lead

__all__ = [
    "ConversationSession",
    "Lead",
]
