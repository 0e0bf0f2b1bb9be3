"""State machine for the single conversation a client has open.

``CLOSED -> OPENING -> OPEN -> SENDING -> OPEN -> CLOSED``

Every open/close bumps ``epoch``. Responses that arrive after the epoch has
moved on are dropped instead of being applied to whatever conversation is
open now; the underlying request is never cancelled.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from enum import StrEnum

from dm_service.application.dto.message import UploadedFileDTO
from dm_service.application.exceptions import AppError, ValidationError
from dm_service.client.api import HttpMessagingApi, MessagingApi
from dm_service.client.attachments import (
    ComposeBuffer,
    Draft,
    PreviewProvider,
    StagedAttachment,
    TempFilePreviewProvider,
)
from dm_service.client.config import ClientConfig
from dm_service.client.inbox import Inbox
from dm_service.client.retry import RetryPolicy, Sleep
from dm_service.domain.entities.message import Message
from dm_service.domain.value_objects.actor import ActorRef
from dm_service.domain.value_objects.conversation_key import conversation_key

logger = logging.getLogger(__name__)


class SessionState(StrEnum):
    CLOSED = "closed"
    OPENING = "opening"
    OPEN = "open"
    SENDING = "sending"


@dataclass(frozen=True, slots=True)
class FailedSend:
    """A send that failed after the user had already left its conversation."""

    counterpart: ActorRef
    draft: Draft
    error: Exception


class ConversationSession:
    def __init__(
        self,
        me: ActorRef,
        api: MessagingApi,
        *,
        previews: PreviewProvider | None = None,
        inbox: Inbox | None = None,
        page_size: int = 50,
        retry: RetryPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.me = me
        self._api = api
        self._previews = previews or TempFilePreviewProvider()
        self.inbox = inbox or Inbox(me)
        self.page_size = page_size
        self._retry = retry or RetryPolicy()
        self._sleep = sleep

        self.state = SessionState.CLOSED
        self.epoch = 0
        self.counterpart: ActorRef | None = None
        self.key: str | None = None
        self.messages: list[Message] = []
        self.has_more = False
        self.scroll_to_newest = False
        self.last_error: Exception | None = None
        self.compose = ComposeBuffer(self._previews)
        self.failed_sends: list[FailedSend] = []

    @classmethod
    def from_config(
        cls,
        me: ActorRef,
        config: ClientConfig,
        *,
        previews: PreviewProvider | None = None,
    ) -> ConversationSession:
        return cls(
            me,
            HttpMessagingApi.from_config(config),
            previews=previews,
            page_size=config.page_size,
            retry=RetryPolicy(
                attempts=config.retry_attempts,
                base_delay=config.retry_base_delay,
                max_delay=config.retry_max_delay,
            ),
        )

    # -- lifecycle ---------------------------------------------------------

    async def open(self, counterpart: ActorRef) -> bool:
        """Open the conversation with ``counterpart`` and load its newest page.

        Returns False if the load failed (see ``last_error``) or was overtaken
        by another open/close.
        """
        if counterpart == self.me:
            raise ValidationError("Cannot message yourself")

        self._leave()
        self.epoch += 1
        epoch = self.epoch
        self.state = SessionState.OPENING
        self.counterpart = counterpart
        self.key = conversation_key(self.me, counterpart)

        try:
            page = await self._retry.run(
                lambda: self._api.history(counterpart, limit=self.page_size),
                sleep=self._sleep,
            )
        except AppError as exc:
            if epoch != self.epoch:
                return False
            logger.warning("Failed to load conversation with %s: %s", counterpart.key, exc)
            self.state = SessionState.CLOSED
            self.last_error = exc
            return False

        if epoch != self.epoch:
            logger.debug("Discarding stale history for %s (epoch %d != %d)",
                         counterpart.key, epoch, self.epoch)
            return False

        self.messages = []
        self._merge(page)
        self.has_more = len(page) >= self.page_size
        self.scroll_to_newest = True
        self.last_error = None
        self.state = SessionState.OPEN
        self.inbox.mark_seen(counterpart)
        return True

    def close(self) -> None:
        self._leave()
        self.epoch += 1
        self.state = SessionState.CLOSED
        self.counterpart = None
        self.key = None

    def _leave(self) -> None:
        if self.state is SessionState.SENDING:
            # The in-flight send owns the staged previews now.
            self.compose = ComposeBuffer(self._previews)
        else:
            self.compose.clear()
        self.messages = []
        self.has_more = False
        self.scroll_to_newest = False

    async def load_older(self) -> int:
        """Prepend the page before the oldest loaded message. Returns messages added."""
        if self.state not in (SessionState.OPEN, SessionState.SENDING):
            return 0
        if not self.messages or not self.has_more:
            return 0

        epoch = self.epoch
        counterpart = self.counterpart
        assert counterpart is not None
        before = self.messages[0].id
        try:
            page = await self._retry.run(
                lambda: self._api.history(counterpart, before=before, limit=self.page_size),
                sleep=self._sleep,
            )
        except AppError as exc:
            if epoch == self.epoch:
                self.last_error = exc
            return 0

        if epoch != self.epoch:
            return 0
        self.has_more = len(page) >= self.page_size
        self.scroll_to_newest = False
        return self._merge(page)

    # -- compose -----------------------------------------------------------

    def _require_editable(self) -> None:
        if self.state is not SessionState.OPEN:
            raise ValidationError(f"Cannot edit the message while {self.state}")

    def set_draft(self, text: str) -> None:
        self._require_editable()
        self.compose.text = text

    def stage_attachment(self, file: UploadedFileDTO) -> StagedAttachment:
        self._require_editable()
        return self.compose.stage(file)

    def replace_attachment(self, index: int, file: UploadedFileDTO) -> StagedAttachment:
        self._require_editable()
        return self.compose.replace(index, file)

    def remove_attachment(self, index: int) -> None:
        self._require_editable()
        self.compose.remove(index)

    def discard_draft(self) -> None:
        self._require_editable()
        self.compose.clear()

    def discard_failed(self, index: int) -> None:
        failed = self.failed_sends.pop(index)
        failed.draft.release(self._previews)

    # -- send / receive ----------------------------------------------------

    async def send(self) -> Message:
        """Send the compose buffer; at most one send in flight per session.

        On failure the buffer is left as it was and the error is re-raised.
        """
        if self.state is SessionState.SENDING:
            raise ValidationError("A message is already being sent")
        if self.state is not SessionState.OPEN:
            raise ValidationError("No conversation is open")
        if self.compose.is_empty():
            raise ValidationError("Message must contain text or at least one attachment")

        epoch = self.epoch
        counterpart = self.counterpart
        assert counterpart is not None
        draft = self.compose.snapshot()
        client_msg_id = uuid.uuid4()
        self.state = SessionState.SENDING

        try:
            msg = await self._retry.run(
                lambda: self._api.send_message(
                    counterpart, draft.text.strip(), draft.files, client_msg_id,
                ),
                sleep=self._sleep,
            )
        except Exception as exc:
            self.last_error = exc
            if epoch == self.epoch:
                self.state = SessionState.OPEN
            else:
                self.failed_sends.append(FailedSend(counterpart, draft, exc))
            raise

        self.inbox.apply(msg)
        if epoch == self.epoch:
            self.compose.clear()
            self._merge([msg])
            self.scroll_to_newest = True
            self.last_error = None
            self.state = SessionState.OPEN
        else:
            draft.release(self._previews)
        return msg

    def receive_push(self, msg: Message) -> bool:
        """Handle a delivered message. Returns True if it landed in the open window."""
        in_window = (
            self.state in (SessionState.OPEN, SessionState.SENDING)
            and msg.conversation_key == self.key
        )
        self.inbox.apply(msg, unread=not in_window and msg.sender != self.me)
        if in_window:
            if self._merge([msg]):
                self.scroll_to_newest = True
        return in_window

    def _merge(self, incoming: list[Message]) -> int:
        known = {m.id for m in self.messages}
        fresh = [m for m in incoming if m.id not in known]
        if fresh:
            self.messages = sorted([*self.messages, *fresh], key=lambda m: m.order_key)
        return len(fresh)
