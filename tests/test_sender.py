"""Tests for metrics delivery."""

import json
import logging

import httpx
import pytest

from monitor_ia.models import CollectorResult
from monitor_ia.sender import MetricsSender


RESULTS = [CollectorResult('claude-code', {'sessionsCount': 2}, '2026-01-15T00:00:00.000Z')]


def make_sender(handler, **kwargs):
    return MetricsSender(
        'https://collector.test/',
        'tok-123',
        retry_wait=0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestSend:
    """Tests for MetricsSender.send."""

    def test_posts_metrics(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={'ok': True})

        with make_sender(handler) as sender:
            assert sender.send(RESULTS) is True

        assert len(requests) == 1
        request = requests[0]
        assert request.method == 'POST'
        assert str(request.url) == 'https://collector.test/api/agent/metrics'
        assert request.headers['Authorization'] == 'Bearer tok-123'
        assert json.loads(request.content) == {
            'metrics': [{
                'tool': 'claude-code',
                'metrics': {'sessionsCount': 2},
                'collectedAt': '2026-01-15T00:00:00.000Z',
            }],
        }

    def test_auth_error_not_retried(self, caplog):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(401)

        with caplog.at_level(logging.ERROR, logger='monitor_ia.sender'):
            with make_sender(handler) as sender:
                assert sender.send(RESULTS) is False

        assert len(calls) == 1
        assert 'Invalid token' in caplog.text

    def test_server_error_retried_then_succeeds(self):
        statuses = iter([500, 200])

        def handler(request):
            return httpx.Response(next(statuses))

        with make_sender(handler) as sender:
            assert sender.send(RESULTS) is True

    def test_gives_up_after_max_retries(self, caplog):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503, text='unavailable')

        with caplog.at_level(logging.ERROR, logger='monitor_ia.sender'):
            with make_sender(handler, max_retries=3) as sender:
                assert sender.send(RESULTS) is False

        assert len(calls) == 3
        assert 'after 3 attempts' in caplog.text

    def test_transport_error_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError('connection refused', request=request)

        with make_sender(handler, max_retries=2) as sender:
            assert sender.send(RESULTS) is False

        assert len(calls) == 2


class TestFetchRemoteConfig:
    """Tests for MetricsSender.fetch_remote_config."""

    def test_returns_config(self):
        def handler(request):
            assert request.url.path == '/api/agent/config'
            assert request.headers['Authorization'] == 'Bearer tok-123'
            return httpx.Response(200, json={'enabledCollectors': ['cursor'], 'encryptionKey': 'k'})

        with make_sender(handler) as sender:
            assert sender.fetch_remote_config() == {'enabledCollectors': ['cursor'], 'encryptionKey': 'k'}

    @pytest.mark.parametrize('response', [
        httpx.Response(500),
        httpx.Response(200, text='not json'),
        httpx.Response(200, json=['a', 'list']),
    ])
    def test_bad_responses_give_empty(self, response):
        with make_sender(lambda request: response) as sender:
            assert sender.fetch_remote_config() == {}

    def test_unreachable_gives_empty(self):
        def handler(request):
            raise httpx.ConnectError('down', request=request)

        with make_sender(handler) as sender:
            assert sender.fetch_remote_config() == {}
