"""
Tests for marshmallow schemas
"""
from datetime import datetime

import pytest
from marshmallow import ValidationError

from schemas import (
    ChannelRecordSchema,
    ProviderCreateSchema,
    ProviderRecordSchema,
    StreamValidateSchema,
)


class TestProviderCreateSchema:
    def test_defaults(self):
        data = ProviderCreateSchema().load({"name": "P", "host": "example.com", "username": "u", "password": "p"})

        assert data["protocol"] == "http"
        assert data["server_port"] is None
        assert data["https_port"] is None
        assert data["user_agent"] == "okhttp/3.14.9"

    def test_accepts_ip_host(self):
        data = ProviderCreateSchema().load({"name": "P", "host": "10.0.0.1", "username": "u", "password": "p"})
        assert data["host"] == "10.0.0.1"

    @pytest.mark.parametrize("host", ["http://example.com", "example.com:8080", "-bad-"])
    def test_rejects_bad_hosts(self, host):
        with pytest.raises(ValidationError) as exc_info:
            ProviderCreateSchema().load({"name": "P", "host": host, "username": "u", "password": "p"})
        assert "host" in exc_info.value.messages

    def test_rejects_out_of_range_port(self):
        with pytest.raises(ValidationError) as exc_info:
            ProviderCreateSchema().load(
                {"name": "P", "host": "example.com", "server_port": 70000, "username": "u", "password": "p"}
            )
        assert "server_port" in exc_info.value.messages


class TestStreamValidateSchema:
    def test_accepts_integer_stream_id(self):
        data = StreamValidateSchema().load(
            {"streamId": 55, "providerUrl": "http://example.com", "username": "u", "password": "p"}
        )
        assert data["stream_id"] == 55

    def test_rejects_boolean_stream_id(self):
        with pytest.raises(ValidationError):
            StreamValidateSchema().load(
                {"streamId": True, "providerUrl": "http://example.com", "username": "u", "password": "p"}
            )


class TestRecordSchemas:
    def test_timestamp_accepts_datetime_and_iso(self):
        now = datetime(2025, 3, 17, 8, 55)

        assert ProviderRecordSchema().load({"last_checked": now})["last_checked"] == now
        assert ProviderRecordSchema().load({"last_checked": "2025-03-17T08:55:00"})["last_checked"] == now

    def test_timestamp_rejects_garbage(self):
        with pytest.raises(ValidationError):
            ProviderRecordSchema().load({"last_checked": "yesterday"})

    def test_channel_validation_result_requires_valid_and_url(self):
        schema = ChannelRecordSchema(partial=True)

        assert schema.load({"validation_result": {"valid": True, "status": 200, "url": "http://x/live/u/p/1"}})
        with pytest.raises(ValidationError):
            schema.load({"validation_result": {"valid": True}})

    def test_channel_name_required(self):
        with pytest.raises(ValidationError) as exc_info:
            ChannelRecordSchema().load({"provider_id": 1, "external_id": "1", "name": None})
        assert "name" in exc_info.value.messages
