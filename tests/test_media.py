import pytest

from conftest import make_png
from doodlemorph import media
from doodlemorph.media import fetch_bytes


class FakeResponse:

    def __init__(self, status_code=200, content=b'', content_type=None, reason='OK'):
        self.status_code = status_code
        self.content = content
        self.reason = reason
        self.headers = {'Content-Type': content_type} if content_type else {}


def test_fetch_http_returns_content_and_mime_type(monkeypatch):
    png = make_png(10, 10)
    requested = []

    def fake_get(url, timeout):
        requested.append((url, timeout))
        return FakeResponse(content=png, content_type='image/png; charset=binary')

    monkeypatch.setattr(media.requests, 'get', fake_get)

    data, mime_type = fetch_bytes('https://cdn.example.com/result.png', timeout=5)

    assert data == png
    assert mime_type == 'image/png'
    assert requested == [('https://cdn.example.com/result.png', 5)]


def test_fetch_http_without_content_type(monkeypatch):
    monkeypatch.setattr(media.requests, 'get', lambda url, timeout: FakeResponse(content=b'abc'))

    assert fetch_bytes('http://example.com/blob') == (b'abc', None)


def test_fetch_http_error_status_raises(monkeypatch):
    monkeypatch.setattr(
        media.requests, 'get',
        lambda url, timeout: FakeResponse(status_code=404, reason='Not Found'),
    )

    with pytest.raises(RuntimeError, match="404 Not Found"):
        fetch_bytes('https://cdn.example.com/missing.png')


def test_fetch_file_url(tmp_path):
    path = tmp_path / 'my doodle.png'
    path.write_bytes(b'pixels')

    assert fetch_bytes(path.as_uri()) == (b'pixels', None)


def test_fetch_unsupported_scheme():
    with pytest.raises(ValueError, match="Unsupported URL scheme"):
        fetch_bytes('ftp://example.com/character.png')
