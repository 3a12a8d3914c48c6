"""
Prometheus metrics for card network monitoring.

Tracks:
- Payment operations by operation and response code
- Payment operation duration
- Requested amounts
- Account operations
- Lock acquisitions and wait time
"""
from prometheus_client import Counter, Histogram

# Payment metrics
payment_operations_total = Counter(
    "card_network_payment_operations_total",
    "Total number of payment operations",
    ["operation", "status"],
)

payment_operation_duration_seconds = Histogram(
    "card_network_payment_operation_duration_seconds",
    "Payment operation duration in seconds",
    ["operation"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

payment_amount = Histogram(
    "card_network_payment_amount",
    "Requested payment amounts in minor units",
    ["operation"],
    buckets=(50, 100, 500, 1000, 5000, 10000, 50000, 100000, 500000, 1000000),
)

# Account metrics
account_operations_total = Counter(
    "card_network_account_operations_total",
    "Total account operations",
    ["operation", "status"],  # create, deposit, detail, statement
)

# Lock metrics
lock_acquisitions_total = Counter(
    "card_network_lock_acquisitions_total",
    "Total lock acquisitions",
    ["backend", "status"],  # acquired, failed, expired
)

lock_wait_seconds = Histogram(
    "card_network_lock_wait_seconds",
    "Time spent waiting for locks in seconds",
    ["backend"],
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0),
)


class MetricsCollector:
    """Helper class for collecting metrics."""

    @staticmethod
    def record_payment_operation(
        operation: str, status: str, amount: int, duration_seconds: float
    ) -> None:
        """Record a payment operation outcome."""
        payment_operations_total.labels(operation=operation, status=status).inc()
        payment_amount.labels(operation=operation).observe(amount)
        payment_operation_duration_seconds.labels(operation=operation).observe(
            duration_seconds
        )

    @staticmethod
    def record_account_operation(operation: str, status: str) -> None:
        """Record an account operation."""
        account_operations_total.labels(operation=operation, status=status).inc()

    @staticmethod
    def record_lock(backend: str, status: str, wait_seconds: float = 0) -> None:
        """Record a lock acquisition."""
        lock_acquisitions_total.labels(backend=backend, status=status).inc()
        if wait_seconds > 0:
            lock_wait_seconds.labels(backend=backend).observe(wait_seconds)


# Export singleton instance
metrics = MetricsCollector()
