import logging
import threading
import time
from collections import OrderedDict
from typing import List, Optional, Set, Tuple

from faq_assistant.config import config
from faq_assistant.models import ConversationMessage, Role

logger = logging.getLogger(__name__)

DEFAULT_CONVERSATION_KEY = "default"


def conversation_key(conversation_id: Optional[str] = None,
                     session_id: Optional[str] = None) -> str:
    return conversation_id or session_id or DEFAULT_CONVERSATION_KEY


class ConversationLog:
    """Ordered message history for one conversation.

    Messages are only ever appended, with two exceptions: the assistant
    placeholder of the current turn is filled once generation finishes, and
    an interrupted assistant turn can be corrected to the text the user
    actually heard.
    """

    def __init__(self, key: str, system_prompt: str):
        self.key = key
        self.created_at = time.time()
        self._messages: List[ConversationMessage] = [
            ConversationMessage(role=Role.SYSTEM, content=system_prompt)
        ]
        # Indices of assistant messages rewritten by an interruption.
        self._corrected: Set[int] = set()

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> List[ConversationMessage]:
        return list(self._messages)

    def append(self, role: Role, content: str, turn_id: Optional[str] = None) -> int:
        self._messages.append(ConversationMessage(role=role, content=content, turn_id=turn_id))
        return len(self._messages) - 1

    def fill_placeholder(self, index: int, content: str) -> bool:
        """Write the final response into the placeholder at ``index``.

        A placeholder already corrected by an interruption keeps the
        corrected text and False is returned.
        """
        message = self._messages[index]
        if message.role != Role.ASSISTANT:
            raise ValueError(f"Message {index} is not an assistant placeholder")
        if index in self._corrected:
            return False
        message.content = content
        return True

    def correct_turn(self, turn_id: str, text_heard: str) -> bool:
        """Rewrite the latest assistant message of ``turn_id`` to ``text_heard``."""
        for index in range(len(self._messages) - 1, 0, -1):
            message = self._messages[index]
            if message.role == Role.ASSISTANT and message.turn_id == turn_id:
                message.content = text_heard
                self._corrected.add(index)
                return True
        return False

    def history(self, limit: int = None) -> List[ConversationMessage]:
        """Prior user/assistant turns, without the system prompt or empty placeholders."""
        turns = [
            m for m in self._messages
            if m.role != Role.SYSTEM and m.content
        ]
        if limit is not None:
            turns = turns[-limit:] if limit > 0 else []
        return turns


class ConversationStore:
    def __init__(self, system_prompt: str, max_conversations: int = None):
        self.system_prompt = system_prompt
        self.max_conversations = (
            max_conversations if max_conversations is not None else config.MAX_CONVERSATIONS
        )
        self._logs: "OrderedDict[str, ConversationLog]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._logs)

    def __contains__(self, key: str) -> bool:
        return key in self._logs

    def keys(self) -> List[str]:
        return list(self._logs.keys())

    def get(self, key: str) -> Optional[ConversationLog]:
        return self._logs.get(key)

    def _insert(self, key: str) -> ConversationLog:
        log = ConversationLog(key, self.system_prompt)
        self._logs.pop(key, None)
        self._logs[key] = log
        while len(self._logs) > self.max_conversations:
            evicted, _ = self._logs.popitem(last=False)
            logger.info("Evicted conversation %s (limit %d)", evicted, self.max_conversations)
        return log

    def begin(self, key: str) -> ConversationLog:
        with self._lock:
            return self._insert(key)

    def get_or_create(self, key: str) -> ConversationLog:
        with self._lock:
            log = self._logs.get(key)
            if log is None:
                log = self._insert(key)
            return log

    def end(self, key: str) -> bool:
        with self._lock:
            return self._logs.pop(key, None) is not None

    def start_turn(self, key: str, user_text: str,
                   turn_id: Optional[str] = None) -> Tuple[ConversationLog, int]:
        """Append the user message and an empty assistant placeholder.

        Returns the log and the placeholder's index for :meth:`ConversationLog.fill_placeholder`.
        """
        log = self.get_or_create(key)
        with self._lock:
            log.append(Role.USER, user_text, turn_id)
            index = log.append(Role.ASSISTANT, "", turn_id)
        return log, index

    def correct_interruption(self, key: str, turn_id: str, text_heard: str) -> bool:
        log = self._logs.get(key)
        if log is None:
            logger.warning("Interruption for unknown conversation %s", key)
            return False
        with self._lock:
            corrected = log.correct_turn(turn_id, text_heard)
        if not corrected:
            logger.warning("No assistant message with turn %s in conversation %s", turn_id, key)
        return corrected
