"""
Tests for cURL header extraction and credential checks
"""

import pytest

from chat_sweeper.curl_parser import (
    check_credentials,
    header_value,
    parse_curl_headers,
    references_profile_endpoint,
)
from chat_sweeper.errors import AuthenticationError, ValidationError
from tests.conftest import CURL_COMMAND


class TestParseCurlHeaders:
    """Tests for parse_curl_headers"""

    def test_single_quoted_headers(self):
        """Chrome style -H 'name: value' flags"""
        headers = parse_curl_headers(CURL_COMMAND)
        assert headers['authorization'] == 'Bearer eyJhbGciOi.test.token'
        assert headers['accept'] == '*/*'
        assert headers['user-agent'] == 'Mozilla/5.0 (X11; Linux x86_64)'

    def test_double_quoted_and_long_flags(self):
        command = 'curl "https://chatgpt.com/backend-api/me" --header "Authorization: Bearer x" -H "Accept: */*"'
        headers = parse_curl_headers(command)
        assert headers == {'Authorization': 'Bearer x', 'Accept': '*/*'}

    def test_unquoted_header(self):
        headers = parse_curl_headers('curl https://chatgpt.com/backend-api/me -H X-Test:1')
        assert headers == {'X-Test': '1'}

    def test_value_keeps_colons(self):
        """Only the first colon separates name from value"""
        headers = parse_curl_headers("curl -H 'Referer: https://chatgpt.com/c/abc'")
        assert headers['Referer'] == 'https://chatgpt.com/c/abc'

    def test_cookie_flag_folded_into_header(self):
        headers = parse_curl_headers(CURL_COMMAND)
        assert headers['Cookie'] == '__Secure-next-auth.session-token=abc123'

    def test_explicit_cookie_header_wins(self):
        command = "curl -H 'cookie: a=1' -b 'b=2'"
        headers = parse_curl_headers(command)
        assert headers == {'cookie': 'a=1'}

    def test_windows_line_endings(self):
        command = "curl 'https://chatgpt.com/backend-api/me' ^\r\n  -H 'Accept: */*' ^\r\n  -H 'Authorization: Bearer t'"
        headers = parse_curl_headers(command)
        assert headers['Authorization'] == 'Bearer t'

    def test_no_headers_returns_empty(self):
        assert parse_curl_headers('curl https://chatgpt.com/backend-api/me') == {}

    def test_garbage_never_raises(self):
        assert parse_curl_headers('') == {}
        assert parse_curl_headers(None) == {}
        assert parse_curl_headers('-H') == {}


class TestReferencesProfileEndpoint:

    def test_profile_endpoint(self):
        assert references_profile_endpoint(CURL_COMMAND)

    def test_other_endpoint(self):
        assert not references_profile_endpoint("curl 'https://chatgpt.com/backend-api/conversations'")

    def test_empty(self):
        assert not references_profile_endpoint('')


class TestCheckCredentials:
    """Tests for check_credentials"""

    def test_too_few_headers(self):
        with pytest.raises(ValidationError):
            check_credentials({'Authorization': 'Bearer t', 'Accept': '*/*'})

    def test_missing_authorization(self):
        with pytest.raises(AuthenticationError) as excinfo:
            check_credentials({'Accept': '*/*', 'User-Agent': 'x', 'Cookie': 'a=1'})
        assert 'Authorization' in str(excinfo.value)

    def test_empty_authorization(self):
        with pytest.raises(AuthenticationError):
            check_credentials({'Authorization': '', 'Accept': '*/*', 'User-Agent': 'x'})

    def test_lowercase_authorization_accepted(self):
        missing = check_credentials(parse_curl_headers(CURL_COMMAND))
        assert missing == []

    def test_reports_missing_recommended(self):
        missing = check_credentials({'Authorization': 'Bearer t', 'Accept': '*/*', 'X-Other': '1'})
        assert missing == ['User-Agent', 'Content-Type', 'Cookie']


class TestHeaderValue:

    def test_case_insensitive(self):
        assert header_value({'content-type': 'application/json'}, 'Content-Type') == 'application/json'

    def test_missing(self):
        assert header_value({}, 'Authorization') is None
