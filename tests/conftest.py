import json

import pytest

from settings import GatewayConfig


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None, content=None, headers=None):
        self.status_code = status_code
        self.headers = dict(headers or {})
        if body is not None:
            self.text = json.dumps(body)
            self.headers.setdefault('Content-Type', 'application/json')
        else:
            self.text = text or ''
        self.content = content if content is not None else self.text.encode('utf-8')

    def json(self):
        return json.loads(self.text)


class RecordingPost:
    """Stands in for requests.post, answering from a queue of responses"""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def __call__(self, url, **kwargs):
        self.calls.append({'url': url, **kwargs})
        answer = self.responses.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer

    @property
    def urls(self):
        return [c['url'] for c in self.calls]


@pytest.fixture()
def make_config():
    def _make(**overrides):
        return GatewayConfig(**overrides)
    return _make


@pytest.fixture()
def fake_post(monkeypatch):
    def _install(*responses):
        recorder = RecordingPost(*responses)
        monkeypatch.setattr('requests.post', recorder)
        return recorder
    return _install
