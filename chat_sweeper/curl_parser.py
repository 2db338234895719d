"""
cURL Parser - Extracts request headers from a browser "Copy as cURL" command
"""

import logging
import re
from typing import Dict, List, Optional

from chat_sweeper.errors import AuthenticationError, ValidationError
from chat_sweeper.models import CredentialSet


logger = logging.getLogger(__name__)

# -H "Name: Value", -H 'Name: Value', --header "Name: Value", -H Name:Value
HEADER_PATTERN = re.compile(r'''(?:-H|--header)\s+(?:["']([^"']+)["']|(\S+))''')

# Looser fallback for commands the primary pattern misses (e.g. -H'Name: Value')
ALT_HEADER_PATTERN = re.compile(r'''-H\s*['"](.+?):\s*(.+?)['"]''')

COOKIE_PATTERN = re.compile(r'''(?:-b|--cookie)\s+(?:["']([^"']+)["']|(\S+))''')

PROFILE_ENDPOINT_MARKER = "chatgpt.com/backend-api/me"

REQUIRED_HEADERS = ["Authorization"]
RECOMMENDED_HEADERS = ["User-Agent", "Accept", "Content-Type", "Cookie"]
MIN_HEADER_COUNT = 3


def parse_curl_headers(curl_command: str) -> CredentialSet:
    """
    Scan a captured cURL command for header flags and return them as a dict.

    Never raises: an empty dict means no headers were found.
    """
    headers: CredentialSet = {}
    clean_command = re.sub(r'\r?\n', ' ', str(curl_command or ''))

    for match in HEADER_PATTERN.finditer(clean_command):
        header_line = match.group(1) or match.group(2)
        if not header_line:
            continue
        separator = header_line.find(':')
        if separator > 0:
            name = header_line[:separator].strip()
            headers[name] = header_line[separator + 1:].strip()

    if not headers and 'curl' in clean_command:
        logger.debug("No headers found with the standard pattern, trying the alternative one")
        for match in ALT_HEADER_PATTERN.finditer(clean_command):
            if match.group(1) and match.group(2):
                headers[match.group(1).strip()] = match.group(2).strip()

    if headers and header_value(headers, "Cookie") is None:
        cookie_match = COOKIE_PATTERN.search(clean_command)
        if cookie_match:
            headers['Cookie'] = (cookie_match.group(1) or cookie_match.group(2)).strip()

    return headers


def references_profile_endpoint(curl_command: str) -> bool:
    """Whether the command was captured from the "who am I" endpoint"""
    return PROFILE_ENDPOINT_MARKER in (curl_command or '')


def check_credentials(headers: CredentialSet) -> List[str]:
    """
    Validate an extracted header set before probing the API.

    Raises ValidationError when too few headers were captured and
    AuthenticationError when a required header is missing. Returns the
    recommended headers that are absent (a warning, not an error).
    """
    if len(headers) < MIN_HEADER_COUNT:
        raise ValidationError(
            "Could not extract enough headers from the cURL command. Please make sure "
            "you're copying the complete cURL command from the browser's network tab."
        )

    missing_required = [name for name in REQUIRED_HEADERS if not header_value(headers, name)]
    if missing_required:
        raise AuthenticationError(
            f"Missing required headers: {', '.join(missing_required)}. "
            "Please copy a new cURL from an active ChatGPT session."
        )

    missing_recommended = [name for name in RECOMMENDED_HEADERS if header_value(headers, name) is None]
    if missing_recommended:
        logger.warning(f"Missing recommended headers: {', '.join(missing_recommended)}. Continuing anyway.")

    return missing_recommended


def header_value(headers: Dict[str, str], name: str) -> Optional[str]:
    """Case-insensitive header lookup (browsers differ in header casing)"""
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None
