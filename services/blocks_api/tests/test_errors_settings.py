import json
import logging
from datetime import date

import pytest

from blocks_shared.references import ReferenceViolation
from services.blocks_api.context import build_context, parse_day
from services.blocks_api.errors import (
    BlocksError,
    ContentGenerationError,
    ErrorKind,
    ExternalServiceError,
    NotFoundError,
    ReferenceIntegrityError,
    ValidationError,
    error_envelope,
)
from services.blocks_api.logging_utils import JsonFormatter
from services.blocks_api.settings import Settings, get_settings


def test_validation_errors_echo_message_and_hint() -> None:
    body = error_envelope(ValidationError.for_field("prompt", "is required"), "req-1")
    assert body == {
        "error": {
            "code": "VALIDATION_ERROR",
            "message": "Validation failed for field 'prompt': is required",
            "hint": "Invalid field: prompt",
        },
        "requestId": "req-1",
    }


def test_internal_kinds_hide_details() -> None:
    violation = ReferenceViolation(reason="unknown_reference", token="agg:x", message="agg:x missing")
    for error in (ReferenceIntegrityError(violation), ContentGenerationError("pool too small")):
        body = error_envelope(error)
        assert error.status_code == 500
        assert body["error"]["code"] == "INTERNAL_ERROR"
        assert body["error"]["message"] == "An unexpected error occurred"
        assert "requestId" not in body


def test_status_codes_per_kind() -> None:
    assert NotFoundError("gone").status_code == 404
    external = ExternalServiceError("timeout talking to 10.1.2.3")
    assert external.status_code == 502
    assert error_envelope(external)["error"]["code"] == "EXTERNAL_SERVICE_ERROR"
    assert "10.1.2.3" not in error_envelope(external)["error"]["message"]


@pytest.mark.parametrize("kind", list(ErrorKind))
def test_every_error_kind_renders(kind: ErrorKind) -> None:
    error = BlocksError("boom")
    error.kind = kind
    body = error_envelope(error)
    assert body["error"]["code"] == error.code.value
    assert error.status_code in (400, 404, 500, 502)


def test_settings_defaults() -> None:
    settings = get_settings()
    assert settings.min_recommendations == 5
    assert settings.max_recommendations == 7
    assert settings.min_timelines == 3
    assert settings.timeline_days == 30
    assert settings.cost_api_url is None
    assert get_settings() is settings


def test_settings_read_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example")
    monkeypatch.setenv("COST_API_TIMEOUT_S", "1.5")
    monkeypatch.setenv("LOG_FORMAT", "JSON")
    monkeypatch.setenv("CURRENCY", "eur")
    monkeypatch.setenv("BLOCKS_MIN_RECOMMENDATIONS", "6")
    settings = get_settings()
    assert settings.cors_origins == ["https://a.example", "https://b.example"]
    assert settings.cost_api_timeout_s == 1.5
    assert settings.log_format == "json"
    assert settings.currency == "EUR"
    assert settings.min_recommendations == 5
    assert "env_prefix" not in Settings.model_config


def test_settings_reject_bad_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MIN_RECOMMENDATIONS", "many")
    with pytest.raises(RuntimeError):
        get_settings()
    get_settings.cache_clear()
    monkeypatch.setenv("MIN_RECOMMENDATIONS", "9")
    with pytest.raises(ValueError):
        get_settings()


def test_context_defaults_and_date_override() -> None:
    ctx = build_context(request_id=None, tenant_id="  ", default_tenant_id="demo-tenant", day_header="2025-01-02")
    assert ctx.tenant_id == "demo-tenant"
    assert ctx.day == date(2025, 1, 2)
    assert ctx.request_id
    with pytest.raises(ValidationError):
        parse_day("yesterday")


def test_json_formatter_includes_request_fields() -> None:
    record = logging.LogRecord("uvicorn.error", logging.INFO, __file__, 1, "answered %s", ("ok",), None)
    record.request_id = "req-7"
    record.tenant_id = "tenant-A"
    payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == "answered ok"
    assert payload["request_id"] == "req-7"
    assert payload["tenant_id"] == "tenant-A"
    assert payload["level"] == "INFO"
