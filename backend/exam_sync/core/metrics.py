from prometheus_client import Counter, Histogram


# Metrics for monitoring offline sync
SYNC_PACKAGES_CREATED = Counter(
    'sync_packages_created_total', 'Download packages created'
)
SYNC_ENROLLMENTS_DOWNLOADED = Counter(
    'sync_enrollments_downloaded_total', 'Enrollments advanced to downloaded'
)
SYNC_ENROLLMENTS_SKIPPED = Counter(
    'sync_enrollments_skipped_total', 'Enrollments skipped because of dangling references'
)
SYNC_RESULTS_PROCESSED = Counter(
    'sync_results_processed_total', 'Uploaded offline results', ['outcome']
)
SYNC_EXPORTS = Counter(
    'sync_package_exports_total', 'Package exports', ['format']
)
SYNC_STATUS_OVERRIDES = Counter(
    'sync_status_overrides_total', 'Enrollments changed by manual status override', ['status']
)
SYNC_OPERATION_LATENCY = Histogram(
    'sync_operation_latency_seconds', 'Sync operation latency', ['operation']
)
