"""
Credential probe - checks a provider's account info endpoint and records the outcome
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict

import requests

from error_handling import CredentialsError, ProviderError, UnreachableError
from models import Provider
from services.record_store import RecordStore
from services.xtream_client import XtreamClient, provider_lock

logger = logging.getLogger(__name__)


def _to_int(value) -> int:
    if isinstance(value, int):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0
    # inf and nan have no integer value
    if not math.isfinite(number):
        return 0
    return int(number)


def _to_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    if isinstance(value, (int, float)):
        return value != 0
    return False


def _to_text(value) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value)


def normalize_account_info(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Flatten an account info response into Provider fields.

    Absent or oddly typed values become the zero value of the field
    (0, "" or False); this never raises.
    """
    user_info = payload.get("user_info") if isinstance(payload, dict) else None
    server_info = payload.get("server_info") if isinstance(payload, dict) else None
    user_info = user_info if isinstance(user_info, dict) else {}
    server_info = server_info if isinstance(server_info, dict) else {}

    return {
        "auth": _to_int(user_info.get("auth")),
        "account_status": _to_text(user_info.get("status")),
        "active_connections": _to_text(user_info.get("active_cons")),
        "max_connections": _to_int(user_info.get("max_connections")),
        "exp_date": _to_text(user_info.get("exp_date")),
        "is_trial": _to_bool(user_info.get("is_trial")),
        "account_created_at": _to_text(user_info.get("created_at")),
        "xui": _to_bool(server_info.get("xui")),
        "version": _to_text(server_info.get("version")),
        "revision": _to_int(server_info.get("revision")),
        "server_url": _to_text(server_info.get("url")),
        "timezone": _to_text(server_info.get("timezone")),
        "timestamp_now": _to_int(server_info.get("timestamp_now")),
        "time_now": _to_text(server_info.get("time_now")),
    }


def _has_account_sections(payload) -> bool:
    return (
        isinstance(payload, dict)
        and isinstance(payload.get("user_info"), dict)
        and isinstance(payload.get("server_info"), dict)
    )


class CredentialProbe:
    """Calls the account info endpoint and stores the provider's account/server state"""

    def __init__(self, store=None, client_factory=XtreamClient.for_provider):
        self.store = store or RecordStore()
        self.client_factory = client_factory

    def check(self, provider: Provider) -> Provider:
        """
        Probe the provider and persist the result.

        The provider is written back in every branch, so its status always
        reflects the latest attempt.

        Raises:
            CredentialsError: non-2xx response or a payload without user_info/server_info
            UnreachableError: DNS or connection failure
            ProviderError: TLS, proxy or any other transport failure (status set to Unknown)
        """
        client = self.client_factory(provider)

        with provider_lock(provider.id):
            try:
                payload = client.get_account_info()
            except requests.HTTPError as e:
                code = e.response.status_code if e.response is not None else "error"
                self._record_status(provider, Provider.STATUS_INVALID_CREDENTIALS)
                raise CredentialsError(f"Provider {provider.name} rejected credentials (HTTP {code})") from e
            except (requests.exceptions.SSLError, requests.exceptions.ProxyError) as e:
                # the host resolved; the failure is in TLS or an intermediate proxy
                self._record_status(provider, Provider.STATUS_UNKNOWN)
                raise ProviderError(f"Account info request to {client.base_url} failed: {e}") from e
            except requests.ConnectionError as e:
                self._record_status(provider, Provider.STATUS_INVALID_DOMAIN)
                raise UnreachableError(f"Cannot connect to {client.base_url}") from e
            except requests.JSONDecodeError as e:
                self._record_status(provider, Provider.STATUS_INVALID_CREDENTIALS)
                raise CredentialsError(f"Provider {provider.name} returned an unreadable account payload") from e
            except requests.RequestException as e:
                self._record_status(provider, Provider.STATUS_UNKNOWN)
                raise ProviderError(f"Account info request to {client.base_url} failed: {e}") from e
            except ValueError as e:
                self._record_status(provider, Provider.STATUS_INVALID_CREDENTIALS)
                raise CredentialsError(f"Provider {provider.name} returned an unreadable account payload") from e

            if not _has_account_sections(payload):
                self._record_status(provider, Provider.STATUS_INVALID_CREDENTIALS)
                raise CredentialsError(f"Provider {provider.name} returned no user_info/server_info")

            changes = normalize_account_info(payload)
            changes["status"] = Provider.STATUS_ACTIVE
            changes["last_checked"] = datetime.now(timezone.utc)
            provider = self.store.update("providers", provider.id, changes)

        logger.info(
            f"Provider {provider.name} is active "
            f"({provider.active_connections or 0}/{provider.max_connections} connections, expires {provider.exp_date or 'never'})"
        )
        return provider

    def _record_status(self, provider, status):
        logger.warning(f"Credential probe for provider {provider.name} (ID: {provider.id}): {status}")
        self.store.update("providers", provider.id, {"status": status, "last_checked": datetime.now(timezone.utc)})
