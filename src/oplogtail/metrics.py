"""
Prometheus metrics for oplog tailing.
"""

from prometheus_client import Counter

operations_total = Counter(
    'oplogtail_operations_total',
    'Total operations yielded from the oplog',
    ['operation']
)

skipped_records_total = Counter(
    'oplogtail_skipped_records_total',
    'Oplog records skipped because they could not be decoded',
    ['error_type']
)

cursor_reopens_total = Counter(
    'oplogtail_cursor_reopens_total',
    'Tailable cursors reopened after the server closed them'
)

transport_errors_total = Counter(
    'oplogtail_transport_errors_total',
    'Driver errors raised while pulling from the oplog cursor',
    ['error_type']
)
