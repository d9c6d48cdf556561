"""
Prometheus metrics for the economy services
"""

from prometheus_client import Counter, Histogram

GIFT_SEND_COUNT = Counter('gift_sends_total', 'Gift send attempts', ['status'])
GIFT_SEND_COINS = Counter('gift_send_coins_total', 'Coins moved by gift sends', ['party'])
GRANT_PURCHASE_COUNT = Counter('grant_purchases_total', 'Grant purchase attempts', ['kind', 'status'])
LEDGER_CONFLICT_COUNT = Counter('ledger_cas_conflicts_total', 'Wallet version conflicts seen by the ledger')
LEDGER_UNIT_DURATION = Histogram('ledger_unit_duration_seconds', 'Duration of ledger units including retries')
SWEEP_ROWS = Counter('sweep_rows_total', 'Rows reconciled by expiry sweeps', ['task'])
SWEEP_FAILURES = Counter('sweep_task_failures_total', 'Failed expiry sweep tasks', ['task'])
EVENT_PUBLISH_FAILURES = Counter('event_publish_failures_total', 'Events that could not be published', ['type'])
