"""
Conversation Syncer - Pages the remote conversation list into the local cache
"""

import logging
import math
from typing import Callable, Dict, List, Optional

from chat_sweeper.client import ChatGPTClient
from chat_sweeper.models import Conversation, ProgressEvent, SyncConfig


logger = logging.getLogger(__name__)


class ConversationSyncer:
    """Loads the user's full conversation collection, one batch at a time"""

    def __init__(
        self,
        client: ChatGPTClient,
        cache: List[Conversation],
        config: Optional[SyncConfig] = None,
        progress_callback: Optional[Callable] = None
    ):
        self.client = client
        self.cache = cache  # shared with the session, filled in place
        self.config = config or SyncConfig()
        self.progress_callback = progress_callback

    # === Main Entry Point ===

    async def sync_all(self, total_hint: int) -> List[Conversation]:
        """Fill the cache with every conversation; a no-op when the cache is already populated"""
        if self.cache:
            logger.debug(f"Using {len(self.cache)} cached conversations")
            return self.cache

        if total_hint == 0:
            logger.info("No conversations found")
            return self.cache

        batch_size = self.config.batch_size
        total_batches = math.ceil(total_hint / batch_size)

        await self._report_progress("sync_started", {
            "message": f"Loading {total_hint:,} conversations in {total_batches} batches...",
            "total_conversations": total_hint,
            "total_batches": total_batches
        })
        await self._report_progress("sync_progress", self._progress_data(0, total_batches, 0, total_hint, 0))

        # Batches run sequentially; a failure discards everything collected so far
        collected: List[Conversation] = []
        offset = 0
        batch_number = 0

        while offset < total_hint:
            logger.debug(f"Fetching batch {batch_number + 1}/{total_batches} at offset {offset}")
            page = await self.client.list_page(offset=offset, limit=batch_size)
            collected.extend(page.items)

            offset += batch_size
            batch_number += 1
            await self._report_progress(
                "sync_progress",
                self._progress_data(batch_number, total_batches, offset, total_hint, len(collected))
            )

        conversations = self._dedupe(collected)
        conversations.sort(key=lambda conversation: conversation.updated_at, reverse=True)

        self.cache[:] = conversations

        await self._report_progress("sync_completed", {
            "loaded": len(self.cache),
            "total_conversations": total_hint,
            "message": f"Loaded {len(self.cache):,} conversations"
        })
        logger.info(f"Synced {len(self.cache)} conversations in {batch_number} batches")

        return self.cache

    # === Helpers ===

    @staticmethod
    def _dedupe(conversations: List[Conversation]) -> List[Conversation]:
        """Keep the first occurrence of each id (offset paging can repeat items)"""
        seen = set()
        unique = []
        for conversation in conversations:
            if conversation.id in seen:
                continue
            seen.add(conversation.id)
            unique.append(conversation)
        if len(unique) != len(conversations):
            logger.debug(f"Dropped {len(conversations) - len(unique)} duplicate conversations")
        return unique

    @staticmethod
    def _progress_data(batch: int, total_batches: int, offset: int, total: int, loaded: int) -> Dict:
        data = ProgressEvent.of(batch, total_batches).to_dict()
        data["fraction"] = min(offset / total, 1.0) if total else 1.0
        data["loaded"] = loaded
        return data

    # === Progress ===

    async def _report_progress(self, event: str, data: Dict) -> None:
        """Send progress update if callback is set"""
        if self.progress_callback:
            await self.progress_callback(event, data)
