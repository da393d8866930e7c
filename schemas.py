"""
Marshmallow schemas for input validation

Two groups:
- Request schemas validate API payloads before they reach a service.
- Record schemas validate what the record store is asked to persist, so a
  malformed upstream entry fails as a validation error instead of a database error.
"""
import re
from datetime import datetime
from functools import wraps

from flask import request
from marshmallow import EXCLUDE, Schema, ValidationError, fields, validate, validates, validates_schema

HOST_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9\-\.]*[a-zA-Z0-9]$")
PROTOCOLS = ("http", "https")
CATEGORY_TYPES = ("live", "movie", "series")


class Timestamp(fields.Field):
    """Accepts a datetime or an ISO 8601 string"""

    def _deserialize(self, value, attr, data, **kwargs):
        if isinstance(value, datetime):
            return value
        try:
            return datetime.fromisoformat(value)
        except (TypeError, ValueError) as e:
            raise ValidationError("Not a valid datetime.") from e

    def _serialize(self, value, attr, obj, **kwargs):
        return value.isoformat() if value else None


def _port(**kwargs):
    return fields.Int(allow_none=True, validate=validate.Range(min=1, max=65535), **kwargs)


# ============================================================================
# Provider Schemas
# ============================================================================


class ProviderCreateSchema(Schema):
    """Schema for creating a new provider"""

    name = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    protocol = fields.Str(load_default="http", validate=validate.OneOf(PROTOCOLS))
    host = fields.Str(required=True, validate=validate.Length(min=1, max=255))
    server_port = _port(load_default=None)
    https_port = _port(load_default=None)
    username = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    password = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    user_agent = fields.Str(load_default="okhttp/3.14.9", validate=validate.Length(min=1, max=255))

    @validates("host")
    def validate_host(self, value, **kwargs):
        """Domain name or IP address, no scheme or port"""
        if not HOST_PATTERN.match(value):
            raise ValidationError("Invalid host format")


# ============================================================================
# Validation Request Schemas
# ============================================================================


class ChannelValidateSchema(Schema):
    """Body of POST /api/validate-channel"""

    channel_id = fields.Int(required=True, data_key="channelId")
    stream_id = fields.Str(load_default=None, data_key="streamId")

    class Meta:
        unknown = EXCLUDE


class StreamValidateSchema(Schema):
    """Body of POST /api/validate-stream"""

    stream_id = fields.Raw(required=True, data_key="streamId")
    provider_url = fields.Str(required=True, data_key="providerUrl")
    username = fields.Str(required=True, validate=validate.Length(min=1))
    password = fields.Str(required=True, validate=validate.Length(min=1))

    class Meta:
        unknown = EXCLUDE

    @validates("stream_id")
    def validate_stream_id(self, value, **kwargs):
        if isinstance(value, bool) or not isinstance(value, (str, int)) or str(value) == "":
            raise ValidationError("Stream id must be a non-empty string or integer")

    @validates("provider_url")
    def validate_provider_url(self, value, **kwargs):
        if not value.startswith(("http://", "https://")):
            raise ValidationError("Provider URL must start with http:// or https://")


class ChannelCountsSchema(Schema):
    """Body of POST /api/channel-counts"""

    provider_id = fields.Int(required=True, data_key="providerId")

    class Meta:
        unknown = EXCLUDE


# ============================================================================
# Record Schemas (used by the record store)
# ============================================================================


class ProviderRecordSchema(Schema):
    name = fields.Str(validate=validate.Length(min=1, max=100))
    protocol = fields.Str(validate=validate.OneOf(PROTOCOLS))
    host = fields.Str(validate=validate.Length(min=1, max=255))
    server_port = _port()
    https_port = _port()
    username = fields.Str()
    password = fields.Str()
    user_agent = fields.Str(allow_none=True)

    status = fields.Str()
    auth = fields.Int()
    account_status = fields.Str(allow_none=True)
    active_connections = fields.Str(allow_none=True)
    max_connections = fields.Int()
    exp_date = fields.Str(allow_none=True)
    is_trial = fields.Bool()
    account_created_at = fields.Str(allow_none=True)

    xui = fields.Bool()
    version = fields.Str(allow_none=True)
    revision = fields.Int()
    server_url = fields.Str(allow_none=True)
    timezone = fields.Str(allow_none=True)
    timestamp_now = fields.Int()
    time_now = fields.Str(allow_none=True)
    last_checked = Timestamp(allow_none=True)


class CategoryRecordSchema(Schema):
    provider_id = fields.Int(required=True)
    external_id = fields.Str(required=True, validate=validate.Length(min=1, max=50))
    name = fields.Str(load_default="", validate=validate.Length(max=200))
    type = fields.Str(load_default="live", validate=validate.OneOf(CATEGORY_TYPES))
    meta = fields.Dict(keys=fields.Str(), load_default=dict)


class ChannelRecordSchema(Schema):
    provider_id = fields.Int(required=True)
    category_id = fields.Int(allow_none=True, load_default=None)
    external_id = fields.Str(required=True, validate=validate.Length(min=1, max=50))
    name = fields.Str(required=True, validate=validate.Length(min=1, max=500))
    icon = fields.Str(load_default="", validate=validate.Length(max=500))
    meta = fields.Dict(keys=fields.Str(), load_default=dict)
    validated_at = Timestamp(allow_none=True)
    validation_result = fields.Dict(allow_none=True)

    @validates_schema
    def validate_validation_result(self, data, **kwargs):
        """A validation result always carries the validity flag and the probed URL"""
        result = data.get("validation_result")
        if result is not None and ("valid" not in result or "url" not in result):
            raise ValidationError("validation_result requires 'valid' and 'url'", "validation_result")


# ============================================================================
# Validation Helpers
# ============================================================================


def validate_request_data(schema_class):
    """
    Decorator to validate request data using a Marshmallow schema

    Usage:
        @bp.route('/api/resource', methods=['POST'])
        @validate_request_data(ResourceCreateSchema)
        def create_resource():
            data = request.validated_data

    Returns 400 Bad Request with the field errors if data is invalid.
    """
    from error_handling import error_response

    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            try:
                request.validated_data = schema_class().load(request.get_json(silent=True) or {})
            except ValidationError as err:
                return error_response("Validation failed", 400, err.messages)
            return f(*args, **kwargs)

        return wrapper

    return decorator
