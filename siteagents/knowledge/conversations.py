"""
Chat Conversations
"""

import logging
from typing import Dict, Any, List, Optional

from siteagents.config import get_chat_config
from siteagents.knowledge.store import KnowledgeStore, StoreError

logger = logging.getLogger(__name__)

TITLE_LENGTH = 50
ROLES = ('user', 'assistant')


def title_from_message(message: str) -> str:
    return message.strip()[:TITLE_LENGTH] or 'New conversation'


class ChatService:
    """
    Stores chat conversations and their messages per project.

    Store failures are logged; reads then come back empty and writes
    report failure instead of raising.
    """

    def __init__(self, store: KnowledgeStore):
        self.store = store

    def create_conversation(self, project_id: str, title: str) -> Optional[str]:
        try:
            conversation_id = self.store.create_conversation(project_id, title_from_message(title))
        except StoreError as e:
            logger.error(f"Failed to create conversation: {e}")
            return None
        logger.info(f"Created conversation {conversation_id} for project {project_id}")
        return conversation_id

    def get_conversation(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        try:
            return self.store.get_conversation(conversation_id)
        except StoreError as e:
            logger.error(f"Failed to load conversation {conversation_id}: {e}")
            return None

    def get_conversations(self, project_id: str) -> List[Dict[str, Any]]:
        try:
            return self.store.get_conversations(project_id)
        except StoreError as e:
            logger.error(f"Failed to load conversations for {project_id}: {e}")
            return []

    def get_messages(self, conversation_id: str) -> List[Dict[str, Any]]:
        try:
            return self.store.get_chat_messages(conversation_id)
        except StoreError as e:
            logger.error(f"Failed to load messages for {conversation_id}: {e}")
            return []

    def get_history(self, conversation_id: str, limit: Optional[int] = None) -> List[Dict[str, str]]:
        """The last `limit` turns as completion messages, oldest first."""
        if limit is None:
            limit = get_chat_config().get('history_limit', 10)
        messages = [
            {'role': message['role'], 'content': message['content']}
            for message in self.get_messages(conversation_id)
            if message.get('role') in ROLES
        ]
        return messages[-limit:] if limit > 0 else []

    def save_exchange(self, conversation_id: str, user_message: str, assistant_message: str) -> bool:
        try:
            self.store.add_chat_message(conversation_id, 'user', user_message)
            self.store.add_chat_message(conversation_id, 'assistant', assistant_message)
            return True
        except StoreError as e:
            logger.error(f"Failed to save chat messages for {conversation_id}: {e}")
            return False

    def delete_conversation(self, conversation_id: str) -> bool:
        try:
            self.store.delete_conversation(conversation_id)
            return True
        except StoreError as e:
            logger.error(f"Failed to delete conversation {conversation_id}: {e}")
            return False
