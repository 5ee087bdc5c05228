"""Chat controller: the single owner of conversation state."""

from typing import List, Optional, Sequence
from uuid import UUID

import structlog

from ..domain.models import (
    ATTACHMENTS_PLACEHOLDER,
    Attachment,
    Conversation,
    FileUpload,
    Message,
    Role,
    derive_title,
)
from ..repositories.base import ConversationRepository
from .backends import ChatBackend

logger = structlog.get_logger()

APOLOGY = "Sorry, there was an error processing your request."
NO_RESPONSE = "No response from the model"


class ChatController:
    """Holds the conversation collection and drives the message exchange.

    Every mutation is written through to the repository. Only one
    ``submit`` may be outstanding at a time; all other operations stay
    available while it waits on the backend.
    """

    def __init__(
        self,
        repository: ConversationRepository,
        backend: ChatBackend,
        conversations: Optional[List[Conversation]] = None,
    ) -> None:
        self.repository = repository
        self.backend = backend
        self.conversations: List[Conversation] = list(conversations or [])
        self.current_id: Optional[UUID] = None
        self.draft = ""
        self.staged_files: List[FileUpload] = []
        self.is_loading = False

    @classmethod
    def open(cls, repository: ConversationRepository, backend: ChatBackend) -> "ChatController":
        """Restore the stored session, starting a fresh chat if there is none."""
        controller = cls(repository, backend, repository.load())
        if controller.conversations:
            controller.current_id = controller.conversations[0].id
        else:
            controller.create_conversation()
        logger.info("chat_session_opened", conversations=len(controller.conversations))
        return controller

    @property
    def current(self) -> Optional[Conversation]:
        if self.current_id is None:
            return None
        return self.get(self.current_id)

    def get(self, conversation_id: UUID) -> Optional[Conversation]:
        for conversation in self.conversations:
            if conversation.id == conversation_id:
                return conversation
        return None

    def _persist(self) -> None:
        self.repository.save(self.conversations)

    def create_conversation(self) -> Conversation:
        conversation = Conversation()
        self.conversations.insert(0, conversation)
        self.current_id = conversation.id
        self.draft = ""
        self.staged_files = []
        self._persist()
        logger.info("conversation_created", conversation_id=str(conversation.id))
        return conversation

    def select_conversation(self, conversation_id: UUID) -> bool:
        if self.get(conversation_id) is None:
            return False
        self.current_id = conversation_id
        return True

    def delete_conversation(self, conversation_id: UUID) -> bool:
        remaining = [c for c in self.conversations if c.id != conversation_id]
        if len(remaining) == len(self.conversations):
            return False
        self.conversations = remaining
        if self.current_id == conversation_id:
            self.current_id = remaining[0].id if remaining else None
        self._persist()
        logger.info("conversation_deleted", conversation_id=str(conversation_id))
        return True

    def rename_conversation(self, conversation_id: UUID, new_title: str) -> Optional[Conversation]:
        """Rename a conversation; blank titles are ignored."""
        title = (new_title or "").strip()
        conversation = self.get(conversation_id)
        if conversation is None or not title:
            logger.warning("rename_skipped", conversation_id=str(conversation_id))
            return None
        conversation.title = title
        conversation.touch()
        self._persist()
        logger.info("conversation_renamed", conversation_id=str(conversation_id))
        return conversation

    def toggle_star(self, conversation_id: UUID) -> Optional[Conversation]:
        conversation = self.get(conversation_id)
        if conversation is None:
            return None
        conversation.is_starred = not conversation.is_starred
        conversation.touch()
        self._persist()
        logger.info(
            "conversation_starred",
            conversation_id=str(conversation_id),
            starred=conversation.is_starred,
        )
        return conversation

    def stage_files(self, files: Sequence[FileUpload]) -> None:
        self.staged_files = list(files)

    def remove_staged_file(self, index: int) -> None:
        self.staged_files = [f for i, f in enumerate(self.staged_files) if i != index]

    async def submit(
        self,
        text: Optional[str] = None,
        files: Optional[Sequence[FileUpload]] = None,
        file_names: Optional[Sequence[str]] = None,
    ) -> Optional[Message]:
        """Send a message in the current conversation.

        ``text`` and ``files`` default to the staged draft and files.
        ``file_names`` marks attachments whose payloads are not available;
        only their names are forwarded.

        Returns the assistant reply, or None when the submission was
        rejected or its conversation was deleted before the reply arrived.
        Backend failures never propagate; they become an apology message.
        """
        content = (self.draft if text is None else text).strip()
        uploads = list(self.staged_files if files is None else files)
        names = list(file_names or [])

        if self.is_loading:
            logger.warning("submit_rejected", reason="in_flight")
            return None
        if not content and not uploads and not names:
            logger.warning("submit_rejected", reason="empty")
            return None

        if self.current is None:
            self.create_conversation()
        conversation = self.current

        attachments = [f.to_attachment() for f in uploads] or [Attachment(name=n) for n in names]
        user_message = Message(
            role=Role.USER,
            content=content or ATTACHMENTS_PLACEHOLDER,
            attachments=attachments or None,
        )
        if not conversation.messages:
            conversation.title = derive_title(user_message.content)
        conversation.messages.append(user_message)
        conversation.touch()
        self._persist()

        self.is_loading = True
        self.draft = ""
        self.staged_files = []
        logger.info(
            "submit_started",
            conversation_id=str(conversation.id),
            attachments=len(attachments),
        )

        try:
            try:
                data = await self.backend.send(user_message.content, files=uploads, file_names=names)
                reply = data.get("response") or data.get("message") or NO_RESPONSE
            except Exception as e:
                logger.error("submit_failed", conversation_id=str(conversation.id), error=str(e))
                reply = APOLOGY

            assistant_message = Message(role=Role.ASSISTANT, content=reply)
            target = self.get(conversation.id)
            if target is None:
                logger.warning("reply_dropped", conversation_id=str(conversation.id))
                return None
            target.messages.append(assistant_message)
            target.touch()
            self._persist()
            return assistant_message
        finally:
            self.is_loading = False
