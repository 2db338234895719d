"""
Tests for ConversationClassifier class
"""

import pytest

from chat_sweeper.classifier import ConversationClassifier, keyword_classify
from chat_sweeper.client import ChatGPTClient
from chat_sweeper.errors import NetworkError, ValidationError
from chat_sweeper.models import CategoryAssignment, ClassificationConfig, Conversation
from tests.conftest import (
    API_KEY,
    BASE_URL,
    CREDENTIALS,
    OPENAI_URL,
    TITLE_LINE_PATTERN,
    FakeBackend,
    make_conversations,
)


def make_classifier(backend: FakeBackend, config=None, progress_callback=None) -> ConversationClassifier:
    client = ChatGPTClient(CREDENTIALS, base_url=BASE_URL, openai_url=OPENAI_URL, transport=backend.transport)
    return ConversationClassifier(client, config, progress_callback)


def as_cache(count: int):
    return [Conversation.from_api(item) for item in make_conversations(count)]


# === Keyword Rules ===

class TestKeywordClassify:
    """Tests for the offline keyword classifier"""

    def test_technology(self):
        assert keyword_classify(['Python decorators'])[0].category == 'Technology & Software Development'

    def test_finance(self):
        assert keyword_classify(['Monthly budget'])[0].category == 'Finance & Investments'

    def test_food(self):
        assert keyword_classify(['Weeknight meal prep'])[0].category == 'Food & Cooking'

    def test_fallback(self):
        assert keyword_classify(['Trip to Lisbon'])[0].category == 'Other'

    def test_case_insensitive(self):
        assert keyword_classify(['RECIPE ideas'])[0].category == 'Food & Cooking'

    def test_keeps_order_and_titles(self):
        result = keyword_classify(['b', 'a'])
        assert [assignment.title for assignment in result] == ['b', 'a']


# === Pipeline ===

@pytest.mark.asyncio
class TestClassifyAll:
    """Tests for the chunked classification pipeline"""

    async def test_chunks_of_one_hundred(self):
        backend = FakeBackend()
        classifier = make_classifier(backend)

        assignments = await classifier.classify_all(as_cache(250), API_KEY)

        chunk_sizes = [len(TITLE_LINE_PATTERN.findall(call['messages'][1]['content'])) for call in backend.classify_calls]
        assert len(backend.classify_calls) == 3
        assert chunk_sizes == [100, 100, 50]
        assert len(assignments) == 250

    async def test_categories_merged_onto_cache(self):
        cache = [
            Conversation(id='1', title='Python packaging'),
            Conversation(id='2', title='Lentil soup recipe'),
            Conversation(id='3', title=None),
        ]
        classifier = make_classifier(FakeBackend())

        await classifier.classify_all(cache, API_KEY)

        assert [conversation.category for conversation in cache] == [
            'Technology & Software Development', 'Food & Cooking', 'Other'
        ]

    async def test_untitled_sent_with_placeholder(self):
        backend = FakeBackend()
        classifier = make_classifier(backend)

        await classifier.classify_all([Conversation(id='1', title=None)], API_KEY)

        assert '1. Untitled conversation' in backend.classify_calls[0]['messages'][1]['content']

    async def test_progress_events(self, progress_recorder):
        classifier = make_classifier(FakeBackend(), ClassificationConfig(batch_size=2), progress_recorder)

        await classifier.classify_all(as_cache(5), API_KEY)

        events = [event for event, data in progress_recorder.events]
        assert events == ['classify_started'] + ['classify_progress'] * 4 + ['classify_completed']
        percents = [data['percent'] for event, data in progress_recorder.events if event == 'classify_progress']
        assert percents == [0, 33, 67, 100]

    async def test_failed_chunk_keeps_earlier_categories(self):
        """150 titles, second call fails: first 100 annotated, the rest untouched"""
        cache = as_cache(150)
        classifier = make_classifier(FakeBackend(fail_classify_calls={2}))

        with pytest.raises(NetworkError):
            await classifier.classify_all(cache, API_KEY)

        assert all(conversation.category == 'Other' for conversation in cache[:100])
        assert all(conversation.category is None for conversation in cache[100:])

    async def test_empty_cache(self):
        classifier = make_classifier(FakeBackend())
        with pytest.raises(ValidationError):
            await classifier.classify_all([], API_KEY)

    async def test_offline_mode_makes_no_calls(self):
        backend = FakeBackend()
        classifier = make_classifier(backend, ClassificationConfig(offline=True))
        cache = [Conversation(id='1', title='Stock picks')]

        assignments = await classifier.classify_all(cache, None)

        assert backend.classify_calls == []
        assert assignments == [CategoryAssignment('Stock picks', 'Finance & Investments')]
        assert cache[0].category == 'Finance & Investments'

    async def test_custom_prompt_used(self):
        backend = FakeBackend()
        classifier = make_classifier(backend)

        await classifier.classify_all([Conversation(id='1', title='Hi')], API_KEY, 'Titles:\n{{TITLES}}')

        assert backend.classify_calls[0]['messages'][1]['content'] == 'Titles:\n1. Hi'


class TestApplyAssignments:
    """Tests for merging classifier output onto the cache"""

    def test_duplicate_titles_only_first_updated(self):
        cache = [
            Conversation(id='1', title='Notes'),
            Conversation(id='2', title='Notes'),
        ]
        matched = ConversationClassifier.apply_assignments(cache, [
            CategoryAssignment('Notes', 'Legal'),
            CategoryAssignment('Notes', 'Lifestyle'),
        ])

        assert matched == 2
        assert cache[0].category == 'Lifestyle'
        assert cache[1].category is None

    def test_unknown_title_ignored(self):
        cache = [Conversation(id='1', title='Notes')]
        matched = ConversationClassifier.apply_assignments(cache, [CategoryAssignment('Other notes', 'Legal')])
        assert matched == 0
        assert cache[0].category is None

    def test_category_counts(self):
        counts = ConversationClassifier.category_counts([
            CategoryAssignment('a', 'Legal'), CategoryAssignment('b', 'Legal'), CategoryAssignment('c')
        ])
        assert counts == {'Legal': 2, 'Other': 1}
