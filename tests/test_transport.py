import asyncio
import threading
from unittest.mock import MagicMock, patch

import pytest
import requests

from hotupdate.common.config import cfg
from hotupdate.core.errors import FetchErrorKind, TransportError
from hotupdate.utils.transport import HttpTransport, get_proxy_data

URL = "https://cdn.example.com/pkg/a.png"


def make_response(status: int = 200, chunks=(), text: str = ""):
    response = MagicMock()
    response.text = text
    response.iter_content.return_value = iter(chunks)
    if status >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(
            f"{status} Client Error", response=MagicMock(status_code=status)
        )
    return response


def test_fetch_text():
    response = make_response(text='{"version": "1.0"}')
    with patch("hotupdate.utils.transport.requests.get", return_value=response) as get:
        text = asyncio.run(HttpTransport(timeout=5).fetch_text(URL))

    assert text == '{"version": "1.0"}'
    assert get.call_args.kwargs["timeout"] == 5
    response.close.assert_called()


def test_bad_status_maps_to_bad_status():
    with patch("hotupdate.utils.transport.requests.get", return_value=make_response(404)):
        with pytest.raises(TransportError) as exc_info:
            asyncio.run(HttpTransport().fetch_text(URL))
    assert exc_info.value.kind is FetchErrorKind.BAD_STATUS
    assert exc_info.value.status == 404


def test_connection_error_maps_to_unreachable():
    with patch(
        "hotupdate.utils.transport.requests.get",
        side_effect=requests.ConnectionError("connection refused"),
    ):
        with pytest.raises(TransportError) as exc_info:
            asyncio.run(HttpTransport().fetch_text(URL))
    assert exc_info.value.kind is FetchErrorKind.UNREACHABLE


def test_download_streams_to_file(tmp_path):
    target = tmp_path / "nested" / "a.png.tmp"
    response = make_response(chunks=[b"abc", b"def"])
    with patch("hotupdate.utils.transport.requests.get", return_value=response) as get:
        result = asyncio.run(HttpTransport().download(URL, target))

    assert result == target
    assert target.read_bytes() == b"abcdef"
    assert get.call_args.kwargs["stream"] is True


def test_download_stops_and_removes_partial_file(tmp_path):
    target = tmp_path / "a.png.tmp"
    stop_event = threading.Event()
    response = make_response(chunks=[b"abc", b"def"])

    def iter_then_stop(chunk_size):
        yield b"abc"
        stop_event.set()
        yield b"def"

    response.iter_content.side_effect = iter_then_stop
    with patch("hotupdate.utils.transport.requests.get", return_value=response):
        with pytest.raises(TransportError):
            asyncio.run(HttpTransport().download(URL, target, stop_event))
    assert not target.exists()


def test_stopped_event_skips_request(tmp_path):
    stop_event = threading.Event()
    stop_event.set()
    with patch("hotupdate.utils.transport.requests.get") as get:
        with pytest.raises(TransportError):
            asyncio.run(HttpTransport().download(URL, tmp_path / "a.png.tmp", stop_event))
    get.assert_not_called()


def test_stop_event_is_per_download(tmp_path):
    transport = HttpTransport()
    stopped = threading.Event()
    stopped.set()
    target = tmp_path / "b.png.tmp"
    with patch(
        "hotupdate.utils.transport.requests.get",
        return_value=make_response(chunks=[b"abc"]),
    ):
        with pytest.raises(TransportError):
            asyncio.run(transport.download(URL, tmp_path / "a.png.tmp", stopped))
        asyncio.run(transport.download(URL, target, threading.Event()))
    assert target.read_bytes() == b"abc"


def test_download_broken_stream_is_unreachable(tmp_path):
    target = tmp_path / "a.png.tmp"
    response = make_response()
    response.iter_content.side_effect = requests.exceptions.ChunkedEncodingError("reset")
    with patch("hotupdate.utils.transport.requests.get", return_value=response):
        with pytest.raises(TransportError) as exc_info:
            asyncio.run(HttpTransport().download(URL, target))
    assert exc_info.value.kind is FetchErrorKind.UNREACHABLE
    assert not target.exists()


def test_no_ssl_marker_disables_verification(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "NO_SSL").write_text("", encoding="utf-8")
    with patch("hotupdate.utils.transport.requests.get", return_value=make_response()) as get:
        asyncio.run(HttpTransport().fetch_text(URL))
    assert get.call_args.kwargs["verify"] is False


def test_proxy_data_from_config():
    original = (cfg.proxy.value, cfg.http_proxy.value)
    try:
        cfg.http_proxy.value = ""
        assert get_proxy_data() is None

        cfg.http_proxy.value = "127.0.0.1:7890"
        cfg.proxy.value = 1
        assert get_proxy_data() == {
            "http": "socks5://127.0.0.1:7890",
            "https": "socks5://127.0.0.1:7890",
        }
    finally:
        cfg.proxy.value, cfg.http_proxy.value = original
