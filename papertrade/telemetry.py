"""OpenTelemetry metrics and logs for papertrade."""

import logging
import os
from decimal import Decimal

from opentelemetry import metrics
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource

from papertrade._version import VERSION


# Module-level state
_initialized = False
_meter = None
_log_handler = None

# Counters (cumulative)
_trades_total = None
_trade_value_total = None
_market_data_requests_total = None
_market_data_retries_total = None
_rate_limited_total = None


def setup_telemetry() -> bool:
    """Initialize OpenTelemetry metrics and log export.

    Returns True if telemetry was initialized, False if disabled.
    """
    global _initialized, _meter, _log_handler
    global _trades_total, _trade_value_total
    global _market_data_requests_total, _market_data_retries_total, _rate_limited_total

    if _initialized:
        return True

    if os.getenv("OTLP_ENABLED", "true").lower() == "false":
        return False

    otlp_endpoint = os.getenv("OTLP_ENDPOINT", "http://localhost:4318/v1/metrics")
    export_interval = int(os.getenv("OTLP_EXPORT_INTERVAL", "5000"))

    resource = Resource.create({
        "service.name": "papertrade",
        "service.version": VERSION,
    })

    reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=otlp_endpoint),
        export_interval_millis=export_interval,
    )
    provider = MeterProvider(resource=resource, metric_readers=[reader])
    metrics.set_meter_provider(provider)

    _meter = metrics.get_meter("papertrade", VERSION)

    _trades_total = _meter.create_counter(
        "papertrade_trades_total",
        description="Total number of ledger trades committed",
        unit="1",
    )

    _trade_value_total = _meter.create_counter(
        "papertrade_trade_value_total",
        description="Total virtual cash moved by trades",
        unit="currency",
    )

    _market_data_requests_total = _meter.create_counter(
        "papertrade_market_data_requests_total",
        description="Requests sent to the quote provider",
        unit="1",
    )

    _market_data_retries_total = _meter.create_counter(
        "papertrade_market_data_retries_total",
        description="Quote provider requests retried after a transient failure",
        unit="1",
    )

    _rate_limited_total = _meter.create_counter(
        "papertrade_rate_limited_total",
        description="Quote provider requests refused by the local rate limiter",
        unit="1",
    )

    # === LOGS ===
    logs_endpoint = otlp_endpoint.replace("/v1/metrics", "/v1/logs")
    logger_provider = LoggerProvider(resource=resource)
    logger_provider.add_log_record_processor(
        BatchLogRecordProcessor(OTLPLogExporter(endpoint=logs_endpoint))
    )
    set_logger_provider(logger_provider)

    _log_handler = LoggingHandler(
        level=logging.INFO,
        logger_provider=logger_provider,
    )

    _initialized = True
    return True


def get_log_handler() -> LoggingHandler | None:
    """Get the OTLP logging handler to attach to Python loggers."""
    return _log_handler


def is_enabled() -> bool:
    """Check if telemetry is initialized and enabled."""
    return _initialized


# --- Counter update functions ---

def record_trade(symbol: str, side: str, total: Decimal) -> None:
    """Record a committed buy or sell."""
    if not _initialized:
        return

    attributes = {"symbol": symbol, "side": side}
    _trades_total.add(1, attributes)
    _trade_value_total.add(float(total), attributes)


def record_market_data_request(outcome: str) -> None:
    """Record one provider request by outcome (ok, error, not_found)."""
    if not _initialized:
        return

    _market_data_requests_total.add(1, {"outcome": outcome})


def record_market_data_retry() -> None:
    if not _initialized:
        return

    _market_data_retries_total.add(1)


def record_rate_limited() -> None:
    if not _initialized:
        return

    _rate_limited_total.add(1)
