"""
Tests for the terminal flow in chat_sweeper_cli
"""

import functools

import pytest
from rich.progress import Progress

import chat_sweeper_cli
from chat_sweeper.service import SweeperService
from tests.conftest import BASE_URL, CURL_COMMAND


@pytest.fixture
def curl_file(tmp_path):
    path = tmp_path / 'curl.txt'
    path.write_text(CURL_COMMAND)
    return str(path)


@pytest.fixture
def cli_backend(monkeypatch, backend):
    """Route the CLI's service through the fake backend"""
    monkeypatch.setenv('CHATGPT_BASE_URL', BASE_URL)
    monkeypatch.delenv('OPENAI_API_KEY', raising=False)
    monkeypatch.setattr(
        chat_sweeper_cli, 'SweeperService', functools.partial(SweeperService, transport=backend.transport)
    )
    return backend


class TestMain:

    def test_missing_curl_file(self, tmp_path):
        assert chat_sweeper_cli.main(['--curl-file', str(tmp_path / 'missing.txt')]) == 1

    def test_dry_run_changes_nothing(self, cli_backend, curl_file):
        exit_code = chat_sweeper_cli.main(['--curl-file', curl_file, '--offline', '--archive-category', 'Food'])

        assert exit_code == 0
        assert cli_backend.mutations == []

    def test_live_archive(self, cli_backend, curl_file):
        exit_code = chat_sweeper_cli.main([
            '--curl-file', curl_file, '--offline', '--archive-category', 'Food', '--no-dry-run'
        ])

        assert exit_code == 0
        assert [mutation['id'] for mutation in cli_backend.mutations] == ['conv-0002']
        assert cli_backend.mutations[0]['payload'] == {'is_archived': True}

    def test_classify_without_key_fails(self, cli_backend, curl_file):
        assert chat_sweeper_cli.main(['--curl-file', curl_file, '--classify']) == 1

    def test_rejected_credentials(self, cli_backend, curl_file):
        cli_backend.profile = {'detail': 'Unauthorized'}
        assert chat_sweeper_cli.main(['--curl-file', curl_file]) == 1


@pytest.mark.asyncio
class TestProgressReporter:

    async def test_tracks_percent(self):
        progress = Progress()
        reporter = chat_sweeper_cli.ProgressReporter(progress)

        await reporter('sync_started', {'message': 'Loading...'})
        await reporter('sync_progress', {'percent': 40})

        assert progress.tasks[0].completed == 40
        assert progress.tasks[0].description == 'Loading...'

        await reporter('sync_completed', {})
        assert progress.tasks[0].finished

    async def test_new_operation_replaces_task(self):
        progress = Progress()
        reporter = chat_sweeper_cli.ProgressReporter(progress)

        await reporter('sync_started', {})
        await reporter('archive_started', {'total': 2})

        assert [task.description for task in progress.tasks] == ['Archive...']
