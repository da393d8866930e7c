"""
Xtream Codes API client - URL building and HTTP calls for one provider
"""

import logging
import threading
from contextlib import contextmanager

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
DEFAULT_USER_AGENT = "okhttp/3.14.9"

_provider_locks = {}
_provider_locks_guard = threading.Lock()


@contextmanager
def provider_lock(provider_id):
    """
    Serialize upstream work for one provider.

    Xtream panels cancel overlapping requests made with the same credentials,
    so probes and syncs for a provider take this lock for their whole run.
    Re-entrant, so a sync can run the credential probe while holding it.
    """
    with _provider_locks_guard:
        lock = _provider_locks.setdefault(provider_id, threading.RLock())
    with lock:
        yield


class XtreamClient:
    """Client for the Xtream Codes player API of a single provider"""

    def __init__(
        self, protocol, host, username, password, port=None, user_agent=DEFAULT_USER_AGENT, timeout=DEFAULT_TIMEOUT
    ):
        self.protocol = protocol or "http"
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.user_agent = user_agent or DEFAULT_USER_AGENT
        self.timeout = timeout

    @classmethod
    def for_provider(cls, provider, timeout=DEFAULT_TIMEOUT):
        """Build a client from a Provider record, picking the port for its protocol"""
        port = provider.https_port if provider.protocol == "https" else provider.server_port
        return cls(
            provider.protocol,
            provider.host,
            provider.username,
            provider.password,
            port=port,
            user_agent=provider.user_agent,
            timeout=timeout,
        )

    @property
    def base_url(self):
        if self.port:
            return f"{self.protocol}://{self.host}:{self.port}"
        return f"{self.protocol}://{self.host}"

    # ------------------------------------------------------------------------
    # URL builders
    # ------------------------------------------------------------------------

    def _api_url(self, action=None, params=None):
        request_params = {"username": self.username, "password": self.password}
        if action:
            request_params["action"] = action
        if params:
            request_params.update({k: v for k, v in params.items() if v is not None})
        return requests.Request("GET", f"{self.base_url}/player_api.php", params=request_params).prepare().url

    def account_info_url(self):
        """Account and server info (user_info / server_info)"""
        return self._api_url("user", {"sub": "info"})

    def live_categories_url(self):
        return self._api_url("get_live_categories")

    def live_streams_url(self, category_id=None):
        return self._api_url("get_live_streams", {"category_id": category_id})

    def vod_categories_url(self):
        return self._api_url("get_vod_categories")

    def vod_streams_url(self, category_id=None):
        return self._api_url("get_vod_streams", {"category_id": category_id})

    def series_categories_url(self):
        return self._api_url("get_series_categories")

    def short_epg_url(self, stream_id, limit=500):
        return self._api_url("get_short_epg", {"stream_id": stream_id, "limit": limit})

    def stream_url(self, stream_id, kind="live"):
        """Direct stream URL, e.g. https://host:port/live/user/pass/55"""
        return f"{self.base_url}/{kind}/{self.username}/{self.password}/{stream_id}"

    # ------------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------------

    def fetch(self, url, timeout=None):
        """GET a player API URL and decode the JSON body; non-2xx raises requests.HTTPError"""
        logger.debug(f"Requesting {self.base_url}/player_api.php for {self.username}")

        response = requests.get(url, headers={"User-Agent": self.user_agent}, timeout=timeout or self.timeout)
        response.raise_for_status()

        return response.json()

    def get_account_info(self):
        return self.fetch(self.account_info_url())

    def get_live_categories(self):
        return self.fetch(self.live_categories_url())

    def get_live_streams(self, category_id=None):
        return self.fetch(self.live_streams_url(category_id))
