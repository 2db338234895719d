"""
Conversation Cleaner - Archives or deletes selected conversations one by one
"""

import logging
from typing import Callable, Dict, List, Optional

from chat_sweeper.client import ChatGPTClient
from chat_sweeper.errors import AuthenticationError, SweeperError, ValidationError
from chat_sweeper.models import MutationFailure, MutationKind, MutationResult, ProgressEvent


logger = logging.getLogger(__name__)


class ConversationCleaner:
    """Applies one mutation kind to a list of conversation ids"""

    def __init__(
        self,
        client: ChatGPTClient,
        kind: MutationKind,
        progress_callback: Optional[Callable] = None
    ):
        self.client = client
        self.kind = MutationKind(kind)
        self.progress_callback = progress_callback

    # === Main Entry Point ===

    async def execute(self, conversation_ids: List[str]) -> MutationResult:
        """
        Attempt every id exactly once, in order.

        A failed id is recorded and the loop moves on; only missing
        credentials or an empty id list stop the run before any call.
        """
        if not conversation_ids:
            raise ValidationError(f"No conversations selected to {self.kind.value}.")
        if not self.client.has_authorization:
            raise AuthenticationError("Not authenticated. Please connect to ChatGPT first.")

        total = len(conversation_ids)
        result = MutationResult(kind=self.kind)
        progress_event = f"{self.kind.value}_progress"

        await self._report_progress(f"{self.kind.value}_started", {
            "total": total,
            "message": f"Processing {total} conversation(s)..."
        })
        await self._report_progress(progress_event, ProgressEvent.of(0, total).to_dict())

        for position, conversation_id in enumerate(conversation_ids, start=1):
            succeeded = await self._mutate(conversation_id, result)

            status = "succeeded" if succeeded else "failed"
            logger.debug(f"{self.kind.value} {conversation_id} {status} ({position}/{total})")
            await self._report_progress(progress_event, ProgressEvent.of(position, total).to_dict())

        if result.failed:
            logger.warning(f"{result.summary}: {[failure.id for failure in result.failed]}")
        else:
            logger.info(result.summary)

        await self._report_progress(f"{self.kind.value}_completed", result.to_dict())
        return result

    # === Conversation Processing ===

    async def _mutate(self, conversation_id: str, result: MutationResult) -> bool:
        """Send one PATCH and record the outcome, returns success"""
        try:
            await self.client.mutate(conversation_id, self.kind.payload)
        except SweeperError as error:
            logger.error(f"Error trying to {self.kind.value} conversation {conversation_id}: {error}")
            result.failed.append(MutationFailure(id=conversation_id, error=str(error)))
            return False

        result.success.append(conversation_id)
        return True

    # === Progress ===

    async def _report_progress(self, event: str, data: Dict) -> None:
        """Send progress update if callback is set"""
        if self.progress_callback:
            await self.progress_callback(event, data)
