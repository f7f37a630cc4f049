from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "path", "status"],
)
REQUEST_ERRORS = Counter(
    "http_request_errors_total",
    "Total HTTP 5xx responses",
    ["method", "path", "status"],
)

PAYMENT_REVIEWS = Counter(
    "payment_reviews_total",
    "Payment review decisions",
    ["outcome"],
)
RECEIPT_UPLOADS = Counter(
    "receipt_uploads_total",
    "Receipt uploads by storage backend",
    ["backend"],
)


def observe_review(outcome: str) -> None:
    PAYMENT_REVIEWS.labels(outcome=outcome).inc()


def observe_receipt_upload(backend: str) -> None:
    RECEIPT_UPLOADS.labels(backend=backend).inc()
