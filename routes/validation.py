"""
Stream validation and channel count routes
"""
import logging

from flask import Blueprint, current_app, jsonify, request

from error_handling import handle_errors
from schemas import ChannelCountsSchema, ChannelValidateSchema, StreamValidateSchema, validate_request_data
from services.catalog_sync import CatalogSyncService
from services.record_store import RecordStore
from services.stream_validator import PROBE_TIMEOUT_MS, StreamValidator, probe_stream

logger = logging.getLogger(__name__)

validation_bp = Blueprint("validation", __name__)

store = RecordStore()


def _probe_timeout_ms():
    return current_app.config.get("STREAM_PROBE_TIMEOUT_MS", PROBE_TIMEOUT_MS)


@validation_bp.route("/api/validate-channel", methods=["POST"])
@handle_errors(return_json=True, default_message="Error validating channel")
@validate_request_data(ChannelValidateSchema)
def validate_channel():
    """Probe a stored channel's stream and save the result on the channel"""
    data = request.validated_data
    validator = StreamValidator(store, timeout_ms=_probe_timeout_ms())
    return jsonify(validator.validate_channel(data["channel_id"], data.get("stream_id")))


@validation_bp.route("/api/validate-stream", methods=["POST"])
@handle_errors(return_json=True, default_message="Error validating stream")
@validate_request_data(StreamValidateSchema)
def validate_stream():
    """Probe an arbitrary provider stream without storing anything"""
    data = request.validated_data
    url = f"{data['provider_url'].rstrip('/')}/live/{data['username']}/{data['password']}/{data['stream_id']}"
    return jsonify(probe_stream(url, _probe_timeout_ms()))


@validation_bp.route("/api/channel-counts", methods=["POST"])
@handle_errors(return_json=True, default_message="Failed to get channel counts")
@validate_request_data(ChannelCountsSchema)
def channel_counts():
    """Number of channels per local category id for a provider"""
    provider_id = request.validated_data["provider_id"]
    store.get_one("providers", provider_id)
    return jsonify(CatalogSyncService(store).count_channels_by_category(provider_id))
