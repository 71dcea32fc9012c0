import asyncio

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

import portal_admin.core.telemetry as telemetry
from portal_admin.core.config import Settings
from portal_admin.services.bulk import BulkActionCoordinator
from portal_admin.services.moderation import ModerationService
from portal_admin.services.statuses import EntityKind
from portal_admin.services.store import InMemoryRepository


@pytest.fixture
def exporter(monkeypatch: pytest.MonkeyPatch) -> InMemorySpanExporter:
    span_exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    monkeypatch.setattr(telemetry, "_tracer", lambda: provider.get_tracer("test"))
    return span_exporter


def test_parse_exporter_headers_skips_malformed_entries() -> None:
    assert telemetry.parse_exporter_headers(" authorization = Bearer x ,broken,=orphan,x-team=ops") == {
        "authorization": "Bearer x",
        "x-team": "ops",
    }
    assert telemetry.parse_exporter_headers(None) == {}


def test_exporter_endpoint_prefers_settings_then_traces_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT", "http://traces:4318/v1/traces")
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://collector:4318")

    assert telemetry.resolve_exporter_endpoint(Settings(otel_exporter_otlp_endpoint="http://mine:4318")) == (
        "http://mine:4318"
    )
    assert telemetry.resolve_exporter_endpoint(Settings()) == "http://traces:4318/v1/traces"

    monkeypatch.delenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT")
    monkeypatch.delenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    assert telemetry.resolve_exporter_endpoint(Settings(otel_exporter_otlp_endpoint="  ")) is None


def test_bulk_status_span_records_outcome_counts(exporter: InMemorySpanExporter) -> None:
    repository = InMemoryRepository()
    repository.load(EntityKind.BLOG_COMMENT, [{"id": "c1", "blog_id": "b1", "content": "hi"}])

    asyncio.run(BulkActionCoordinator(repository).apply(EntityKind.BLOG_COMMENT, ["c1", "c2"], "approved"))

    (span,) = exporter.get_finished_spans()
    assert span.name == "admin.bulk_status"
    assert span.attributes["portal.entity_kind"] == "blog_comment"
    assert span.attributes["portal.target_status"] == "approved"
    assert span.attributes["portal.requested"] == 2
    assert span.attributes["portal.succeeded"] == 1
    assert span.attributes["portal.failed"] == 1


def test_delete_span_carries_policy_mode(exporter: InMemorySpanExporter) -> None:
    repository = InMemoryRepository()
    repository.load(EntityKind.COMPANY, [{"id": "co1", "name": "Acme"}])

    asyncio.run(ModerationService(repository).delete(EntityKind.COMPANY, "co1", actor_id="admin-1"))

    (span,) = exporter.get_finished_spans()
    assert span.name == "admin.delete"
    assert span.attributes["portal.mode"] == "hard"
