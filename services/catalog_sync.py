"""
Catalog sync service - pulls categories and channels from a provider into the local store

Sync only appends: records already present (same provider and external id)
are left untouched. Requests and item writes for one provider run strictly
one after another.
"""

import logging
from collections import Counter
from typing import Any, Dict, List, Optional

from error_handling import CancelledError, DuplicateError, ProviderError, RecordValidationError
from models import Category, Channel, Provider, db
from services.credential_probe import CredentialProbe
from services.record_store import RecordStore
from services.xtream_client import XtreamClient, provider_lock

logger = logging.getLogger(__name__)

# Upstream stream fields kept in the channel metadata bag
CHANNEL_METADATA_FIELDS = (
    "stream_type",
    "tv_archive",
    "direct_source",
    "added",
    "custom_sid",
    "epg_channel_id",
)

# Per-item channel failures that skip the item instead of aborting the phase
SKIPPABLE_CHANNEL_ERRORS = (DuplicateError, CancelledError, RecordValidationError)


def _external_key(value) -> str:
    """Provider ids arrive as ints or strings; store them as text"""
    if value is None or isinstance(value, (dict, list, bool)):
        return ""
    return str(value).strip()


def _optional_text(value) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


class CatalogSyncService:
    """Append-only sync of live categories and channels for a provider"""

    def __init__(self, store=None, client_factory=XtreamClient.for_provider, probe=None):
        self.store = store or RecordStore()
        self.client_factory = client_factory
        self.probe = probe or CredentialProbe(self.store, client_factory)

    def sync_provider(self, provider_id: int, check_credentials: bool = True) -> Dict[str, Any]:
        """
        Probe credentials, then sync categories, then channels.

        Args:
            provider_id: Provider to sync
            check_credentials: Run the credential probe first

        Returns:
            Dict with sync statistics

        Credential and category failures propagate to the caller.
        """
        provider = self.store.get_one("providers", provider_id)
        logger.info(f"Starting sync for provider {provider.name} (ID: {provider_id})")

        with provider_lock(provider.id):
            if check_credentials:
                provider = self.probe.check(provider)
            categories = self.sync_categories(provider)
            channels = self.sync_channels(provider)

        stats = {
            "success": True,
            "provider_id": provider.id,
            "provider_name": provider.name,
            "categories_added": len(categories),
            "channels_added": len(channels),
        }
        logger.info(
            f"Sync completed for provider {provider.name}: "
            f"{stats['categories_added']} categories, {stats['channels_added']} channels added"
        )
        return stats

    def sync_categories(self, provider: Provider) -> List[Category]:
        """
        Create live categories the store doesn't have yet.

        Duplicates are skipped; any other failure aborts the phase.
        """
        client = self.client_factory(provider)
        created = []
        skipped = 0

        with provider_lock(provider.id):
            entries = client.get_live_categories()
            if not isinstance(entries, list):
                raise ProviderError(f"Provider {provider.name} returned an unexpected category list")

            for entry in entries:
                if not isinstance(entry, dict):
                    logger.warning(f"Skipping malformed category entry from provider {provider.name}: {entry!r}")
                    skipped += 1
                    continue

                record = {
                    "provider_id": provider.id,
                    "external_id": _external_key(entry.get("category_id")),
                    "name": _optional_text(entry.get("category_name")) or "",
                    "type": Category.TYPE_LIVE,
                    "meta": {"category_id": entry.get("category_id"), "parent_id": entry.get("parent_id")},
                }
                try:
                    created.append(self.store.create("categories", record))
                except DuplicateError:
                    logger.warning(f"Skipping duplicate category {record['external_id']} for provider {provider.name}")
                    skipped += 1

        logger.info(f"Categories for provider {provider.name}: {len(created)} added, {skipped} skipped")
        return created

    def sync_channels(self, provider: Provider) -> List[Channel]:
        """
        Create live channels the store doesn't have yet.

        Best effort: duplicates, cancelled writes and malformed entries are
        logged and skipped. Returns the channels that were created.
        """
        client = self.client_factory(provider)
        created = []
        skipped = 0

        with provider_lock(provider.id):
            entries = client.get_live_streams()
            if not isinstance(entries, list):
                raise ProviderError(f"Provider {provider.name} returned an unexpected stream list")

            category_lookup = {
                category.external_id: category.id
                for category in self.store.list_all("categories", provider_id=provider.id)
            }

            for entry in entries:
                if not isinstance(entry, dict):
                    logger.warning(f"Skipping malformed stream entry from provider {provider.name}: {entry!r}")
                    skipped += 1
                    continue

                stream_id = _external_key(entry.get("stream_id"))
                metadata = {"stream_id": entry.get("stream_id")}
                metadata.update({field: entry.get(field) for field in CHANNEL_METADATA_FIELDS})
                record = {
                    "provider_id": provider.id,
                    "category_id": category_lookup.get(_external_key(entry.get("category_id"))),
                    "external_id": stream_id,
                    "name": _optional_text(entry.get("name")),
                    "icon": _optional_text(entry.get("stream_icon")) or "",
                    "meta": metadata,
                }
                try:
                    created.append(self.store.create("channels", record))
                except CancelledError as e:
                    logger.warning(f"Channel {stream_id or '?'} for provider {provider.name} cancelled: {e}")
                    skipped += 1
                except SKIPPABLE_CHANNEL_ERRORS as e:
                    logger.warning(f"Skipping channel {stream_id or '?'} for provider {provider.name}: {e}")
                    skipped += 1

        logger.info(f"Channels for provider {provider.name}: {len(created)} added, {skipped} skipped")
        return created

    def sync_all_providers(self) -> List[Dict[str, Any]]:
        """
        Sync every provider, one at a time

        Returns:
            List of sync statistics for each provider
        """
        results = []

        for provider in self.store.list_all("providers"):
            try:
                results.append(self.sync_provider(provider.id))
            except Exception as e:
                logger.error(f"Error syncing provider {provider.id}: {e}")
                db.session.rollback()
                results.append({"success": False, "provider_id": provider.id, "error": str(e)})

        return results

    def count_channels_by_category(self, provider_id: int) -> Dict[str, int]:
        """Channel count per local category id; uncategorized channels count under ''"""
        counts = Counter(
            str(channel.category_id) if channel.category_id is not None else ""
            for channel in self.store.list_all("channels", provider_id=provider_id)
        )
        return dict(counts)
