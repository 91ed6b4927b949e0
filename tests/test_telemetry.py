import logging
from types import SimpleNamespace

from feedsync import telemetry


def _no_instrumentation():
    return SimpleNamespace(instrument=lambda: None)


def test_tracing_disabled_installs_nothing(monkeypatch):
    providers = []
    monkeypatch.setattr(telemetry.settings, "otel_enabled", False)
    monkeypatch.setattr(telemetry.trace, "set_tracer_provider", providers.append)

    telemetry.setup_tracing()

    assert providers == []


def test_exporter_failure_is_logged_and_provider_still_installed(monkeypatch, caplog):
    def broken_exporter(**kwargs):
        raise ValueError("invalid endpoint")

    providers = []
    monkeypatch.setattr(telemetry.settings, "otel_enabled", True)
    monkeypatch.setattr(telemetry, "OTLPSpanExporter", broken_exporter)
    monkeypatch.setattr(telemetry, "HTTPXClientInstrumentor", _no_instrumentation)
    monkeypatch.setattr(telemetry.trace, "set_tracer_provider", providers.append)

    with caplog.at_level(logging.WARNING, logger="feedsync.telemetry"):
        telemetry.setup_tracing()

    assert "OTLP exporter unavailable: invalid endpoint" in caplog.text
    assert "connect" not in caplog.text
    assert len(providers) == 1
