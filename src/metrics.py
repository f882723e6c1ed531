"""
Prometheus metrics for the coffee price oracle.
Exposes metrics for monitoring via /metrics endpoint.
"""

import threading
from http.server import HTTPServer, BaseHTTPRequestHandler
from typing import Optional

from prometheus_client import (
    Counter, Histogram, Info,
    generate_latest, CONTENT_TYPE_LATEST,
    REGISTRY,
)


# =============================================================================
# Cache Metrics
# =============================================================================

cache_requests_total = Counter(
    'coffeeprice_cache_requests_total',
    'Base quote cache lookups',
    ['result']
)

cache_evictions_total = Counter(
    'coffeeprice_cache_evictions_total',
    'Cache entries evicted by the resolver',
    ['reason']
)


# =============================================================================
# Quote Source Metrics
# =============================================================================

remote_fetch_total = Counter(
    'coffeeprice_remote_fetch_total',
    'Calls made to the quote source',
    ['operation', 'status']
)

remote_fetch_latency_seconds = Histogram(
    'coffeeprice_remote_fetch_latency_seconds',
    'Quote source call latency in seconds',
    ['operation'],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0)
)

stale_quotes_total = Counter(
    'coffeeprice_stale_quotes_total',
    'Quotes returned with stale price data',
    ['operation']
)


# =============================================================================
# Validation Metrics
# =============================================================================

price_validations_total = Counter(
    'coffeeprice_price_validations_total',
    'Sale price validations by verdict',
    ['verdict']
)


# =============================================================================
# System Info
# =============================================================================

system_info = Info(
    'coffeeprice_system',
    'System information'
)


# =============================================================================
# Metrics Server
# =============================================================================

class MetricsHandler(BaseHTTPRequestHandler):
    """HTTP handler for Prometheus metrics endpoint."""

    def log_message(self, format, *args):
        """Suppress default logging."""
        pass

    def do_GET(self):
        if self.path == '/metrics':
            self.send_response(200)
            self.send_header('Content-Type', CONTENT_TYPE_LATEST)
            self.end_headers()
            self.wfile.write(generate_latest(REGISTRY))
        else:
            self.send_error(404, 'Not Found')


class MetricsServer:
    """Prometheus metrics HTTP server."""

    def __init__(self, host: str = '0.0.0.0', port: int = 8000):
        self.host = host
        self.port = port
        self.server: Optional[HTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    def start(self):
        """Start metrics server in background thread."""
        self.server = HTTPServer((self.host, self.port), MetricsHandler)
        self._thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        self._thread.start()

    def stop(self):
        """Stop the metrics server."""
        if self.server:
            self.server.shutdown()
            self.server.server_close()
            self.server = None


# Singleton
_metrics_server: Optional[MetricsServer] = None


def start_metrics_server(port: int = 8000) -> MetricsServer:
    """Start the metrics server singleton."""
    global _metrics_server
    if _metrics_server is None:
        _metrics_server = MetricsServer(port=port)
        _metrics_server.start()
    return _metrics_server


# =============================================================================
# Helper Functions
# =============================================================================

def record_cache_lookup(hit: bool):
    """Record a cache hit or miss."""
    cache_requests_total.labels(result='hit' if hit else 'miss').inc()


def record_cache_eviction(reason: str):
    """Record an explicit eviction (stale, projection, manual)."""
    cache_evictions_total.labels(reason=reason).inc()


def record_remote_fetch(operation: str, success: bool, latency_seconds: float = 0):
    """Record a quote source call."""
    remote_fetch_total.labels(operation=operation, status='success' if success else 'failure').inc()
    if latency_seconds > 0:
        remote_fetch_latency_seconds.labels(operation=operation).observe(latency_seconds)


def record_stale_quote(operation: str):
    """Record that an operation returned stale price data."""
    stale_quotes_total.labels(operation=operation).inc()


def record_price_validation(is_valid: bool):
    """Record a sale price validation verdict."""
    price_validations_total.labels(verdict='valid' if is_valid else 'invalid').inc()


def set_system_info(version: str, environment: str):
    """Set system information."""
    system_info.info({
        'version': version,
        'environment': environment
    })
