"""
Sweeper Service - Facade over the session and the core components.
Turns core exceptions into tagged results for the web and CLI surfaces.
"""

import functools
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import httpx

from chat_sweeper.classifier import ConversationClassifier
from chat_sweeper.cleaner import ConversationCleaner
from chat_sweeper.client import ChatGPTClient
from chat_sweeper.config import ConfigStore, Settings
from chat_sweeper.curl_parser import check_credentials, parse_curl_headers, references_profile_endpoint
from chat_sweeper.errors import AuthenticationError, SweeperError, ValidationError
from chat_sweeper.models import (
    CategoryAssignment,
    ClassificationConfig,
    Conversation,
    CredentialSet,
    MutationKind,
    SelectionSet,
    SyncConfig,
    ViewState,
)
from chat_sweeper.results import Err, Ok, PartialFailure, Result
from chat_sweeper.syncer import ConversationSyncer
from chat_sweeper.views import (
    SORT_FIELDS,
    available_categories,
    compute_stats,
    filter_by_category,
    group_and_paginate,
    paginate,
    sort_conversations,
)


logger = logging.getLogger(__name__)


def returns_result(method: Callable) -> Callable:
    """Wrap a service method so SweeperError comes back as Err instead of raising"""
    if inspect.iscoroutinefunction(method):
        @functools.wraps(method)
        async def async_wrapper(*args, **kwargs) -> Result:
            try:
                return await method(*args, **kwargs)
            except SweeperError as error:
                logger.info(f"{method.__name__} failed: {error.kind}: {error}")
                return Err.from_exception(error)
        return async_wrapper

    @functools.wraps(method)
    def wrapper(*args, **kwargs) -> Result:
        try:
            return method(*args, **kwargs)
        except SweeperError as error:
            logger.info(f"{method.__name__} failed: {error.kind}: {error}")
            return Err.from_exception(error)
    return wrapper


@dataclass
class Session:
    """Everything tied to one authenticated ChatGPT account"""
    credentials: CredentialSet
    profile: Dict[str, str]
    total_conversations: Optional[int] = None
    conversations: List[Conversation] = field(default_factory=list)
    assignments: List[CategoryAssignment] = field(default_factory=list)
    selection: SelectionSet = field(default_factory=SelectionSet)
    view: ViewState = field(default_factory=ViewState)

    def find(self, conversation_id: str) -> Optional[Conversation]:
        for conversation in self.conversations:
            if conversation.id == conversation_id:
                return conversation
        return None


class SweeperService:
    """Facade for ChatGPT operations - owns the session and delegates to specialized classes"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        config_store: Optional[ConfigStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.settings = settings or Settings()
        self.config_store = config_store or ConfigStore(self.settings.openai_api_key)
        self.transport = transport

        self.session: Optional[Session] = None
        self.client: Optional[ChatGPTClient] = None

        # Progress callback
        self.progress_callback: Optional[Callable] = None

    def set_progress_callback(self, callback: Optional[Callable]) -> None:
        """Set callback for progress updates"""
        self.progress_callback = callback

    def _make_client(self, credentials: CredentialSet) -> ChatGPTClient:
        return ChatGPTClient(
            credentials,
            base_url=self.settings.chatgpt_base_url,
            openai_url=self.settings.openai_api_url,
            model=self.settings.openai_model,
            transport=self.transport
        )

    def _require_session(self) -> Session:
        if self.session is None or self.client is None:
            raise AuthenticationError("Not authenticated. Please connect to ChatGPT first.")
        return self.session

    # === Authentication ===

    @returns_result
    async def authenticate(self, curl_command: str) -> Result:
        """Validate a captured cURL command and open a new session"""
        curl_command = (curl_command or "").strip()
        if not curl_command:
            raise ValidationError("Please paste a cURL command before connecting")
        if not references_profile_endpoint(curl_command):
            raise ValidationError("The cURL command does not contain the required ChatGPT API endpoint.")

        headers = parse_curl_headers(curl_command)
        logger.info(f"Extracted {len(headers)} headers from cURL command")
        check_credentials(headers)

        client = self._make_client(headers)
        profile = await client.probe()

        # Replace any previous session wholesale
        self.client = client
        self.session = Session(
            credentials=dict(headers),
            profile={
                "email": profile.get("email") or "Unknown",
                "name": profile.get("name") or "Unknown",
            },
            view=ViewState(page_size=self.settings.page_size)
        )

        try:
            page = await client.list_page(offset=0, limit=1)
            self.session.total_conversations = page.total
            logger.info(f"Found {page.total} conversations")
        except SweeperError as error:
            logger.warning(f"Could not fetch conversation count: {error}")

        return Ok({
            **self.session.profile,
            "conversations_count": self.session.total_conversations or 0,
        })

    @returns_result
    def reset(self) -> Result:
        """Forget the session (back-navigation)"""
        self.session = None
        self.client = None
        logger.info("Session cleared")
        return Ok(None)

    # === Sync (delegates to ConversationSyncer) ===

    @returns_result
    async def sync_conversations(self) -> Result:
        session = self._require_session()
        await self._sync(session)
        return Ok(list(session.conversations))

    async def _sync(self, session: Session) -> List[Conversation]:
        if session.total_conversations is None and not session.conversations:
            page = await self.client.list_page(offset=0, limit=1)
            session.total_conversations = page.total

        syncer = ConversationSyncer(
            self.client, session.conversations, SyncConfig(), self.progress_callback
        )
        return await syncer.sync_all(session.total_conversations or 0)

    # === Classification (delegates to ConversationClassifier) ===

    @returns_result
    async def classify_conversations(self, prompt_template: Optional[str] = None) -> Result:
        session = self._require_session()

        api_key = self.config_store.get_openai_key()
        if not api_key and not self.settings.use_mock_api:
            raise ValidationError("OpenAI API key is not set")

        conversations = await self._sync(session)
        if not conversations:
            raise ValidationError("No conversations found to categorize.")

        if session.assignments:
            logger.info("Categorizing again - resetting selection and grouping")
            session.selection.clear()
            session.view.group_by_category = False
            session.view.category_filter = None
            session.view.offset = 0

        classifier = ConversationClassifier(
            self.client,
            ClassificationConfig(offline=self.settings.use_mock_api),
            self.progress_callback
        )
        template = prompt_template or self.config_store.get_custom_prompt()
        session.assignments = await classifier.classify_all(conversations, api_key, template)

        return Ok(list(session.assignments))

    @returns_result
    def set_category(self, conversation_id: str, category: str) -> Result:
        """Manually move one cached conversation to another category"""
        session = self._require_session()
        if not category:
            raise ValidationError("A category is required")
        conversation = session.find(conversation_id)
        if conversation is None:
            raise ValidationError(f"Unknown conversation: {conversation_id}")
        conversation.category = category
        return Ok(conversation)

    # === Selection ===

    @staticmethod
    def _require_cached(session: Session, conversation_ids: List[str]) -> None:
        """Only conversations in the local cache can be selected"""
        unknown = [conversation_id for conversation_id in conversation_ids if session.find(conversation_id) is None]
        if unknown:
            raise ValidationError(f"Unknown conversations: {', '.join(unknown)}")

    @returns_result
    def mark_for_archive(self, conversation_ids: List[str]) -> Result:
        session = self._require_session()
        self._require_cached(session, conversation_ids)
        for conversation_id in conversation_ids:
            session.selection.mark_for_archive(conversation_id)
        return Ok(session.selection)

    @returns_result
    def mark_for_delete(self, conversation_ids: List[str]) -> Result:
        session = self._require_session()
        self._require_cached(session, conversation_ids)
        for conversation_id in conversation_ids:
            session.selection.mark_for_delete(conversation_id)
        return Ok(session.selection)

    @returns_result
    def unmark(self, conversation_ids: List[str]) -> Result:
        session = self._require_session()
        for conversation_id in conversation_ids:
            session.selection.unmark(conversation_id)
        return Ok(session.selection)

    @returns_result
    def clear_selection(self) -> Result:
        session = self._require_session()
        session.selection.clear()
        return Ok(session.selection)

    # === Cleanup (delegates to ConversationCleaner) ===

    async def archive_selected(self) -> Result:
        return await self._run_mutation(MutationKind.ARCHIVE)

    async def delete_selected(self) -> Result:
        return await self._run_mutation(MutationKind.DELETE)

    @returns_result
    async def _run_mutation(self, kind: MutationKind) -> Result:
        session = self._require_session()
        conversation_ids = session.selection.ids_for(kind)

        cleaner = ConversationCleaner(self.client, kind, self.progress_callback)
        result = await cleaner.execute(conversation_ids)

        self._forget(session, result.success)

        if result.is_partial:
            return PartialFailure(result, [failure.to_dict() for failure in result.failed])
        return Ok(result)

    @staticmethod
    def _forget(session: Session, conversation_ids: List[str]) -> None:
        """Drop mutated conversations from the cache, the selection and the assignments"""
        removed_ids = set(conversation_ids)
        removed_titles = [
            conversation.display_title for conversation in session.conversations
            if conversation.id in removed_ids
        ]

        for conversation_id in conversation_ids:
            session.selection.unmark(conversation_id)
        session.conversations[:] = [
            conversation for conversation in session.conversations
            if conversation.id not in removed_ids
        ]

        for title in removed_titles:
            for index, assignment in enumerate(session.assignments):
                if assignment.title == title:
                    del session.assignments[index]
                    break

        view = session.view
        if view.category_filter and not filter_by_category(session.conversations, view.category_filter):
            logger.info(f"No conversations left in category {view.category_filter!r}, clearing filter")
            view.category_filter = None
            view.offset = 0

    # === Views ===

    @returns_result
    def list_view(
        self,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
        category: Optional[str] = None
    ) -> Result:
        """A flat, optionally filtered page of the cache"""
        session = self._require_session()
        view = session.view

        if category != view.category_filter:
            view.category_filter = category
            if offset is None:
                view.offset = 0
        if offset is not None:
            view.offset = max(0, offset)
        if limit is not None:
            view.page_size = max(1, limit)
        view.group_by_category = False

        conversations = filter_by_category(session.conversations, view.category_filter)
        if view.sort_field != "update_time":
            conversations = sort_conversations(conversations, view.sort_field)
        return Ok(paginate(conversations, view.offset, view.page_size))

    @returns_result
    def grouped_view(self, offset: Optional[int] = None, limit: Optional[int] = None) -> Result:
        """A page of the classification results grouped by category"""
        session = self._require_session()
        if not session.assignments:
            raise ValidationError("Conversations have not been categorized yet.")

        view = session.view
        if offset is not None:
            view.offset = max(0, offset)
        if limit is not None:
            view.page_size = max(1, limit)
        view.group_by_category = True
        view.category_filter = None

        return Ok(group_and_paginate(session.assignments, view.offset, view.page_size))

    @returns_result
    def set_sort(self, sort_field: str) -> Result:
        session = self._require_session()
        if sort_field not in SORT_FIELDS:
            raise ValidationError(f"Unsupported sort field: {sort_field}")
        session.view.sort_field = sort_field
        session.conversations[:] = sort_conversations(session.conversations, sort_field)
        return Ok(sort_field)

    @returns_result
    def categories(self) -> Result:
        session = self._require_session()
        return Ok(available_categories(session.assignments))

    @returns_result
    def stats(self) -> Result:
        session = self._require_session()
        return Ok(compute_stats(session.conversations, session.assignments))

    @returns_result
    def selection(self) -> Result:
        session = self._require_session()
        return Ok(session.selection)

    # === Settings ===

    @returns_result
    def set_openai_key(self, api_key: str) -> Result:
        self.config_store.set_openai_key(api_key)
        return Ok(None)

    @returns_result
    def set_custom_prompt(self, prompt: Optional[str], save: bool = True) -> Result:
        self.config_store.set_custom_prompt(prompt, save)
        return Ok(None)

    def settings_summary(self) -> Dict[str, Any]:
        return {
            "has_openai_key": bool(self.config_store.get_openai_key()),
            "custom_prompt": self.config_store.get_custom_prompt(),
            "use_mock_api": self.settings.use_mock_api,
        }
