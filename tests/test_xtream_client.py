"""
Tests for the Xtream Codes API client
"""

import threading
import time
from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest
import requests

from services.xtream_client import XtreamClient, provider_lock


def make_provider(**overrides):
    fields = {
        "protocol": "https",
        "host": "example.com",
        "server_port": 8080,
        "https_port": 8443,
        "username": "u",
        "password": "p",
        "user_agent": None,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


class TestBaseUrl:
    """Base URL and port selection"""

    def test_https_uses_https_port(self):
        client = XtreamClient.for_provider(make_provider())
        assert client.base_url == "https://example.com:8443"

    def test_http_uses_server_port(self):
        client = XtreamClient.for_provider(make_provider(protocol="http"))
        assert client.base_url == "http://example.com:8080"

    def test_port_omitted_when_absent(self):
        client = XtreamClient.for_provider(make_provider(https_port=None))
        assert client.base_url == "https://example.com"

    def test_default_user_agent(self):
        client = XtreamClient.for_provider(make_provider())
        assert client.user_agent == "okhttp/3.14.9"


class TestUrlBuilders:
    """Player API URL construction"""

    def setup_method(self):
        self.client = XtreamClient("https", "example.com", "u", "p", port=8443)

    def test_account_info_url(self):
        assert (
            self.client.account_info_url()
            == "https://example.com:8443/player_api.php?username=u&password=p&action=user&sub=info"
        )

    def test_live_categories_url(self):
        assert (
            self.client.live_categories_url()
            == "https://example.com:8443/player_api.php?username=u&password=p&action=get_live_categories"
        )

    def test_live_streams_url(self):
        assert self.client.live_streams_url().endswith("action=get_live_streams")
        assert self.client.live_streams_url("7").endswith("action=get_live_streams&category_id=7")

    def test_credentials_are_query_encoded(self):
        client = XtreamClient("http", "example.com", "user name", "p&ss")
        url = client.live_categories_url()
        assert "username=user+name" in url
        assert "password=p%26ss" in url

    def test_other_catalog_urls(self):
        assert "action=get_vod_categories" in self.client.vod_categories_url()
        assert "action=get_vod_streams" in self.client.vod_streams_url()
        assert "action=get_series_categories" in self.client.series_categories_url()
        assert self.client.short_epg_url(55).endswith("action=get_short_epg&stream_id=55&limit=500")

    def test_stream_url(self):
        assert self.client.stream_url(55) == "https://example.com:8443/live/u/p/55"
        assert self.client.stream_url("9", kind="movie") == "https://example.com:8443/movie/u/p/9"


class TestFetch:
    """HTTP wrapper"""

    @patch("services.xtream_client.requests.get")
    def test_fetch_passes_timeout_and_user_agent(self, mock_get):
        mock_get.return_value = Mock(json=Mock(return_value=[]))

        client = XtreamClient("http", "example.com", "u", "p", user_agent="CustomAgent/1.0", timeout=12)
        client.get_live_categories()

        args, kwargs = mock_get.call_args
        assert args[0] == client.live_categories_url()
        assert kwargs["timeout"] == 12
        assert kwargs["headers"]["User-Agent"] == "CustomAgent/1.0"

    @patch("services.xtream_client.requests.get")
    def test_fetch_per_call_timeout(self, mock_get):
        mock_get.return_value = Mock(json=Mock(return_value={}))

        client = XtreamClient("http", "example.com", "u", "p")
        client.fetch(client.account_info_url(), timeout=3)

        assert mock_get.call_args[1]["timeout"] == 3

    @patch("services.xtream_client.requests.get")
    def test_fetch_raises_on_http_error(self, mock_get):
        response = Mock(status_code=401)
        response.raise_for_status.side_effect = requests.exceptions.HTTPError("401 Unauthorized", response=response)
        mock_get.return_value = response

        client = XtreamClient("http", "example.com", "u", "bad")

        with pytest.raises(requests.exceptions.HTTPError):
            client.get_account_info()

    @patch("services.xtream_client.requests.get")
    def test_get_live_streams(self, mock_get):
        mock_get.return_value = Mock(json=Mock(return_value=[{"stream_id": 101, "name": "ESPN"}]))

        client = XtreamClient("http", "example.com", "u", "p")
        streams = client.get_live_streams()

        assert streams[0]["name"] == "ESPN"
        assert "action=get_live_streams" in mock_get.call_args[0][0]


class TestProviderLock:
    """Single-flight per provider"""

    def test_same_provider_is_serialized(self):
        events = []

        def worker(name):
            with provider_lock(1):
                events.append(f"{name}-start")
                time.sleep(0.05)
                events.append(f"{name}-end")

        threads = [threading.Thread(target=worker, args=(name,)) for name in ("a", "b")]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert events in (
            ["a-start", "a-end", "b-start", "b-end"],
            ["b-start", "b-end", "a-start", "a-end"],
        )

    def test_lock_is_reentrant(self):
        with provider_lock(2):
            with provider_lock(2):
                pass

    def test_different_providers_do_not_block(self):
        entered = threading.Event()

        def worker():
            with provider_lock(4):
                entered.set()

        with provider_lock(3):
            thread = threading.Thread(target=worker)
            thread.start()
            assert entered.wait(1)
            thread.join()
