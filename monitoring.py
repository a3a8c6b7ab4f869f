"""Prometheus metrics and monitoring setup."""
from prometheus_client import Counter, Histogram, generate_latest

# Metrics
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint']
)

http_request_errors_total = Counter(
    'http_request_errors_total',
    'Total HTTP request errors',
    ['method', 'endpoint', 'error_type']
)

chain_transactions_total = Counter(
    'chain_transactions_total',
    'Ticket contract transactions by lifecycle action and outcome',
    ['action', 'outcome']
)

chain_transaction_duration_seconds = Histogram(
    'chain_transaction_duration_seconds',
    'Time from submission to receipt for ticket contract transactions',
    ['action'],
    buckets=(0.5, 1, 2, 5, 10, 30, 60, 120, 300)
)

store_operations_total = Counter(
    'store_operations_total',
    'Ticket store operations',
    ['operation', 'outcome']
)

reconciliation_gaps_total = Counter(
    'reconciliation_gaps_total',
    'Confirmed chain actions that could not be mirrored into the store',
    ['action']
)

tickets_minted_total = Counter(
    'tickets_minted_total',
    'Tickets created on-chain and mirrored (mint and buy)',
    ['action']
)


def get_metrics():
    """Get Prometheus metrics as string."""
    return generate_latest().decode('utf-8')
