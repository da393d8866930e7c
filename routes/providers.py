"""
Provider management, credential check and sync routes
"""
import logging

from flask import Blueprint, current_app, jsonify, request

from error_handling import handle_errors
from schemas import ProviderCreateSchema, validate_request_data
from services.catalog_sync import CatalogSyncService
from services.credential_probe import CredentialProbe
from services.record_store import RecordStore
from services.xtream_client import XtreamClient

logger = logging.getLogger(__name__)

# Create blueprint
providers_bp = Blueprint("providers", __name__)

store = RecordStore()


def client_factory(provider):
    """XtreamClient for a provider using the configured request timeout"""
    return XtreamClient.for_provider(provider, timeout=current_app.config.get("PROVIDER_REQUEST_TIMEOUT", 30))


def get_sync_service():
    return CatalogSyncService(store, client_factory)


# ============================================================================
# API Routes - Provider CRUD
# ============================================================================


@providers_bp.route("/api/providers", methods=["GET"])
def get_providers():
    """Get all providers"""
    return jsonify([p.to_dict() for p in store.list_all("providers")])


@providers_bp.route("/api/providers", methods=["POST"])
@handle_errors(return_json=True, default_message="Error creating provider")
@validate_request_data(ProviderCreateSchema)
def create_provider():
    """Create a provider; its status stays Unknown until the first check"""
    provider = store.create("providers", request.validated_data)
    logger.info(f"Created provider {provider.name} (ID: {provider.id})")
    return jsonify(provider.to_dict()), 201


@providers_bp.route("/api/providers/<int:provider_id>", methods=["GET"])
@handle_errors(return_json=True, default_message="Error fetching provider")
def get_provider(provider_id):
    return jsonify(store.get_one("providers", provider_id).to_dict())


@providers_bp.route("/api/providers/<int:provider_id>/categories", methods=["GET"])
@handle_errors(return_json=True, default_message="Error fetching categories")
def get_provider_categories(provider_id):
    store.get_one("providers", provider_id)
    return jsonify([c.to_dict() for c in store.list_all("categories", provider_id=provider_id)])


@providers_bp.route("/api/providers/<int:provider_id>/channels", methods=["GET"])
@handle_errors(return_json=True, default_message="Error fetching channels")
def get_provider_channels(provider_id):
    """Channels of a provider, optionally narrowed with ?category_id="""
    store.get_one("providers", provider_id)
    filters = {"provider_id": provider_id}
    category_id = request.args.get("category_id", type=int)
    if category_id is not None:
        filters["category_id"] = category_id
    return jsonify([c.to_dict() for c in store.list_all("channels", **filters)])


# ============================================================================
# API Routes - Credential Check and Sync
# ============================================================================


@providers_bp.route("/api/providers/<int:provider_id>/check", methods=["POST"])
@handle_errors(return_json=True, default_message="Error checking provider")
def check_provider(provider_id):
    """Probe the account info endpoint and store account/server state"""
    provider = store.get_one("providers", provider_id)
    provider = CredentialProbe(store, client_factory).check(provider)
    return jsonify({"success": True, "provider": provider.to_dict()})


@providers_bp.route("/api/providers/<int:provider_id>/sync", methods=["POST"])
@handle_errors(return_json=True, default_message="Error syncing provider")
def sync_provider(provider_id):
    """Check credentials, then pull categories and channels"""
    check_credentials = request.args.get("check", "true").lower() != "false"
    stats = get_sync_service().sync_provider(provider_id, check_credentials=check_credentials)
    return jsonify(stats)


@providers_bp.route("/api/sync/all", methods=["POST"])
@handle_errors(return_json=True, default_message="Error syncing all providers")
def sync_all_providers():
    """Sync every provider, one after another"""
    results = get_sync_service().sync_all_providers()
    return jsonify({"success": True, "providers_synced": len(results), "results": results})
