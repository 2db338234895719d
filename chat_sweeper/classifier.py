"""
Conversation Classifier - Sends cached titles to the classifier in chunks
and merges the returned categories back onto the cache
"""

import logging
from typing import Callable, Dict, List, Optional

from chat_sweeper.client import ChatGPTClient
from chat_sweeper.errors import SweeperError, ValidationError
from chat_sweeper.models import (
    CategoryAssignment,
    ClassificationConfig,
    Conversation,
    DEFAULT_CATEGORY,
    ProgressEvent,
)


logger = logging.getLogger(__name__)

# Offline rules used when the remote classifier is disabled
KEYWORD_RULES = [
    ("Technology & Software Development", [
        'software', 'code', 'programming', 'python', 'javascript', 'web', 'app',
        'developer', 'tech', 'ai', 'computer', 'data'
    ]),
    ("Finance & Investments", [
        'finance', 'invest', 'money', 'stock', 'budget', 'crypto', 'financial', 'bank'
    ]),
    ("Food & Cooking", ['food', 'cook', 'recipe', 'meal']),
]


def keyword_classify(titles: List[str]) -> List[CategoryAssignment]:
    """Categorize titles with substring rules; first matching rule wins"""
    assignments = []
    for title in titles:
        lowered = title.lower()
        category = DEFAULT_CATEGORY
        for candidate, keywords in KEYWORD_RULES:
            if any(keyword in lowered for keyword in keywords):
                category = candidate
                break
        assignments.append(CategoryAssignment(title=title, category=category))
    return assignments


class ConversationClassifier:
    """Runs the chunked classification pipeline over the conversation cache"""

    def __init__(
        self,
        client: ChatGPTClient,
        config: Optional[ClassificationConfig] = None,
        progress_callback: Optional[Callable] = None
    ):
        self.client = client
        self.config = config or ClassificationConfig()
        self.progress_callback = progress_callback

    # === Main Entry Point ===

    async def classify_all(
        self,
        conversations: List[Conversation],
        api_key: Optional[str],
        prompt_template: Optional[str] = None
    ) -> List[CategoryAssignment]:
        """Classify every cached conversation; categories land on the cache chunk by chunk"""
        if not conversations:
            raise ValidationError("No conversations found to categorize.")

        titles = [conversation.display_title for conversation in conversations]
        chunks = self._chunk(titles, self.config.batch_size)

        await self._report_progress("classify_started", {
            "total_titles": len(titles),
            "total_batches": len(chunks),
            "message": f"Categorizing {len(titles):,} conversations in {len(chunks)} batches..."
        })
        await self._report_progress("classify_progress", ProgressEvent.of(0, len(chunks)).to_dict())

        assignments: List[CategoryAssignment] = []
        for index, chunk in enumerate(chunks, start=1):
            logger.debug(f"Categorizing batch {index}/{len(chunks)} ({len(chunk)} titles)")
            try:
                chunk_assignments = await self._classify_chunk(chunk, api_key, prompt_template)
            except SweeperError as error:
                logger.error(f"Failed to categorize batch {index}: {error}")
                raise

            # Categories from earlier chunks stay on the cache even if a later chunk fails
            self.apply_assignments(conversations, chunk_assignments)
            assignments.extend(chunk_assignments)

            await self._report_progress("classify_progress", ProgressEvent.of(index, len(chunks)).to_dict())

        distribution = self.category_counts(assignments)
        logger.info(f"Categorized {len(assignments)} conversations into {len(distribution)} categories")
        logger.debug(f"Category distribution: {distribution}")

        await self._report_progress("classify_completed", {
            "categorized": len(assignments),
            "categories": len(distribution),
            "message": f"Successfully categorized {len(assignments)} conversations into {len(distribution)} categories."
        })

        return assignments

    async def _classify_chunk(
        self,
        titles: List[str],
        api_key: Optional[str],
        prompt_template: Optional[str]
    ) -> List[CategoryAssignment]:
        if self.config.offline:
            return keyword_classify(titles)
        return await self.client.classify(titles, api_key, prompt_template)

    # === Merge ===

    @staticmethod
    def apply_assignments(conversations: List[Conversation], assignments: List[CategoryAssignment]) -> int:
        """
        Set each assignment's category on the first cached conversation with
        that title. Lookups are not consumed, so when titles repeat only the
        earliest conversation is updated. Returns the number of assignments
        that matched a conversation.
        """
        first_by_title: Dict[str, Conversation] = {}
        for conversation in conversations:
            first_by_title.setdefault(conversation.display_title, conversation)

        matched = 0
        for assignment in assignments:
            conversation = first_by_title.get(assignment.title)
            if conversation is None:
                logger.debug(f"No cached conversation titled {assignment.title!r}")
                continue
            conversation.category = assignment.category
            matched += 1
        return matched

    @staticmethod
    def category_counts(assignments: List[CategoryAssignment]) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for assignment in assignments:
            counts[assignment.category] = counts.get(assignment.category, 0) + 1
        return counts

    @staticmethod
    def _chunk(titles: List[str], size: int) -> List[List[str]]:
        return [titles[start:start + size] for start in range(0, len(titles), size)]

    # === Progress ===

    async def _report_progress(self, event: str, data: Dict) -> None:
        """Send progress update if callback is set"""
        if self.progress_callback:
            await self.progress_callback(event, data)
