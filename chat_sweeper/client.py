"""
ChatGPT Client - Authenticated HTTP calls against the ChatGPT backend API
and the OpenAI chat-completion endpoint used for classification
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from chat_sweeper.curl_parser import header_value
from chat_sweeper.errors import (
    AuthenticationError,
    ClassificationParseError,
    NetworkError,
    ValidationError,
)
from chat_sweeper.models import (
    CategoryAssignment,
    Conversation,
    ConversationPage,
    CredentialSet,
    DEFAULT_CATEGORY,
)
from chat_sweeper.prompts import ALL_CATEGORIES, SYSTEM_PROMPT, build_prompt


logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://chatgpt.com"
DEFAULT_OPENAI_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-3.5-turbo"

CLASSIFY_TEMPERATURE = 0.3
CLASSIFY_MAX_TOKENS = 2000
MUTATION_TIMEOUT = 15.0

# A JSON array of objects anywhere in the reply, tolerating commentary around it
JSON_ARRAY_PATTERN = re.compile(r'\[\s*\{.*\}\s*\]', re.DOTALL)


class ChatGPTClient:
    """Issues probe, list, classify and mutate calls using a captured CredentialSet"""

    def __init__(
        self,
        credentials: CredentialSet,
        base_url: str = DEFAULT_BASE_URL,
        openai_url: str = DEFAULT_OPENAI_URL,
        model: str = DEFAULT_MODEL,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.credentials: CredentialSet = dict(credentials)
        self.base_url = base_url.rstrip('/')
        self.openai_url = openai_url
        self.model = model
        self._transport = transport

    @property
    def has_authorization(self) -> bool:
        return bool(header_value(self.credentials, 'Authorization'))

    # === ChatGPT Backend ===

    async def probe(self) -> Dict[str, Any]:
        """Call the "who am I" endpoint; returns the profile on success"""
        action = "Failed to connect to ChatGPT."
        response = await self._request(
            "GET", f"{self.base_url}/backend-api/me", action, headers=self.credentials
        )
        self._check_status(response, action)
        data = self._json_body(response)

        if data.get('detail') == "Unauthorized":
            raise AuthenticationError(
                "Authentication failed: Unauthorized. Please copy a new cURL from an active ChatGPT session."
            )

        if data.get('object') == "" and not data.get('email') and not data.get('name'):
            raise AuthenticationError(
                "Authentication failed: Received empty user profile. "
                "Please copy a new cURL from an active ChatGPT session."
            )

        logger.info("Credential probe succeeded")
        return data

    async def list_page(self, offset: int = 0, limit: int = 20) -> ConversationPage:
        """Fetch one page of conversations ordered by last update (newest first)"""
        action = "Failed to fetch conversations."
        response = await self._request(
            "GET",
            f"{self.base_url}/backend-api/conversations",
            action,
            headers=self.credentials,
            params={'offset': offset, 'limit': limit, 'order': 'updated'}
        )
        self._check_status(response, action)
        data = self._json_body(response)

        items = data.get('items')
        if not isinstance(items, list):
            raise NetworkError("Invalid response from ChatGPT API", status_code=response.status_code)

        conversations = [Conversation.from_api(item) for item in items if isinstance(item, dict) and item.get('id')]
        if len(conversations) != len(items):
            logger.warning(f"Skipped {len(items) - len(conversations)} malformed conversations at offset {offset}")

        return ConversationPage(
            items=conversations,
            total=int(data.get('total') or 0),
            offset=int(data.get('offset') or offset),
            limit=int(data.get('limit') or limit)
        )

    async def mutate(self, conversation_id: str, payload: Dict[str, Any]) -> None:
        """PATCH a single conversation; only a 200 with {"success": true} counts as success"""
        action = f"Failed to update conversation {conversation_id}."

        # Backfill into a copy so the stored credentials stay untouched
        headers = dict(self.credentials)
        if header_value(headers, 'Content-Type') is None:
            headers['Content-Type'] = 'application/json'
        if header_value(headers, 'Origin') is None:
            headers['Origin'] = self.base_url

        response = await self._request(
            "PATCH",
            f"{self.base_url}/backend-api/conversation/{conversation_id}",
            action,
            headers=headers,
            content=json.dumps(payload),
            timeout=MUTATION_TIMEOUT
        )

        if response.status_code in (401, 403):
            raise AuthenticationError(f"{action} Status: {response.status_code}")
        if response.status_code != 200:
            raise NetworkError(f"{action} Status: {response.status_code}", status_code=response.status_code)

        try:
            body = response.json()
        except ValueError:
            body = None

        if not isinstance(body, dict) or body.get('success') is not True:
            raise NetworkError(f"Unexpected response from ChatGPT API: {response.text}", status_code=200)

        logger.debug(f"Conversation {conversation_id} updated with {payload}")

    # === Classification ===

    async def classify(
        self,
        titles: List[str],
        api_key: str,
        prompt_template: Optional[str] = None
    ) -> List[CategoryAssignment]:
        """Ask the chat-completion endpoint to categorize a batch of titles"""
        if not api_key:
            raise ValidationError("OpenAI API key is not set")
        if not titles:
            raise ValidationError("No conversation titles provided")

        action = "Failed to categorize conversations."
        body = {
            'model': self.model,
            'messages': [
                {'role': 'system', 'content': SYSTEM_PROMPT},
                {'role': 'user', 'content': build_prompt(titles, prompt_template)}
            ],
            'temperature': CLASSIFY_TEMPERATURE,
            'max_tokens': CLASSIFY_MAX_TOKENS,
        }

        logger.info(f"Sending categorization request for {len(titles)} titles")
        response = await self._request(
            "POST",
            self.openai_url,
            action,
            headers={'Authorization': f'Bearer {api_key}', 'Content-Type': 'application/json'},
            json=body
        )
        self._check_status(response, action)

        try:
            content = response.json()['choices'][0]['message']['content']
        except (ValueError, KeyError, IndexError, TypeError) as error:
            raise ClassificationParseError(f"Failed to parse OpenAI response: {error!r}") from error

        logger.debug(f"OpenAI response: {content}")
        return parse_classification_response(content)

    # === HTTP Plumbing ===

    async def _request(
        self,
        method: str,
        url: str,
        action: str,
        headers: Dict[str, str],
        timeout: Optional[float] = None,
        **kwargs
    ) -> httpx.Response:
        """Send one request; transport failures become NetworkError, unsendable requests ValidationError"""
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=timeout) as client:
                return await client.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as error:
            logger.error(f"{action} Request timed out: {error!r}")
            raise NetworkError("timeout") from error
        except httpx.RequestError as error:
            logger.error(f"{action} No response received: {error!r}")
            raise NetworkError(f"{action} No response received from server.") from error
        except httpx.InvalidURL as error:
            logger.error(f"{action} Invalid request URL: {error}")
            raise ValidationError(f"{action} Invalid request URL: {error}") from error
        except UnicodeEncodeError as error:
            logger.error(f"{action} Header value is not ASCII: {error}")
            raise ValidationError(f"{action} A captured header contains non-ASCII characters.") from error

    @staticmethod
    def _check_status(response: httpx.Response, action: str) -> None:
        """Raise AuthenticationError on 401/403 and NetworkError on other error statuses"""
        if response.status_code in (401, 403):
            raise AuthenticationError(f"{action} Status: {response.status_code}")
        if response.is_error:
            logger.error(f"{action} Status: {response.status_code}")
            raise NetworkError(f"{action} Status: {response.status_code}", status_code=response.status_code)

    @staticmethod
    def _json_body(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as error:
            raise NetworkError("Invalid response from ChatGPT API", status_code=response.status_code) from error
        if not isinstance(data, dict):
            raise NetworkError("Invalid response from ChatGPT API", status_code=response.status_code)
        return data


def parse_classification_response(content: str) -> List[CategoryAssignment]:
    """
    Extract the (title, category) array from a model reply.

    Looks for an embedded JSON array first and falls back to parsing the
    whole reply. Elements missing a title or category are coerced to
    defaults rather than dropped.
    """
    content = content or ""
    match = JSON_ARRAY_PATTERN.search(content)
    json_text = match.group(0) if match else content

    try:
        parsed = json.loads(json_text)
    except ValueError as error:
        raise ClassificationParseError(f"Failed to parse OpenAI response: {error}") from error

    if not isinstance(parsed, list):
        raise ClassificationParseError("Failed to parse OpenAI response: Response is not an array")

    assignments = []
    for item in parsed:
        if not isinstance(item, dict):
            item = {}
        title = item.get('title')
        category = item.get('category')
        if not title or not category:
            logger.warning(f"Invalid category item: {item}")
        elif category not in ALL_CATEGORIES:
            logger.warning(f"Category outside the known set: {category}")
        assignments.append(CategoryAssignment(
            title=str(title or 'Unknown title'),
            category=str(category or DEFAULT_CATEGORY)
        ))

    return assignments
