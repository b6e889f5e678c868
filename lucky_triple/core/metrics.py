"""
Prometheus metrics for the Lucky Triple backend.

Metrics exposed (HTTP request metrics come from the instrumentator in main):
- Wagers played by match count, stake and payout volume
- Withdrawal transitions and deposit credits
- SMS sends by outcome and outbox dispatch results
"""
from prometheus_client import Counter, Gauge

# Game Metrics
wagers_total = Counter(
    "lucky_triple_wagers_total",
    "Total wagers settled",
    ["matches"]
)

wager_stake_total = Counter(
    "lucky_triple_wager_stake_total",
    "Total amount staked on wagers"
)

wager_payout_total = Counter(
    "lucky_triple_wager_payout_total",
    "Total amount paid out on winning wagers"
)

# Money movement
withdrawals_total = Counter(
    "lucky_triple_withdrawals_total",
    "Withdrawal transitions",
    ["status"]
)

deposits_total = Counter(
    "lucky_triple_deposits_total",
    "Payment callbacks by outcome",
    ["outcome"]
)

admin_credits_total = Counter(
    "lucky_triple_admin_credits_total",
    "Manual credits applied by admins"
)

balance_conflicts_total = Counter(
    "lucky_triple_balance_conflicts_total",
    "Balance compare-and-swap writes that lost a race",
    ["operation"]
)

# Notifications
sms_sent_total = Counter(
    "lucky_triple_sms_sent_total",
    "Outbound SMS attempts by outcome",
    ["outcome"]
)

outbox_dispatch_total = Counter(
    "lucky_triple_outbox_dispatch_total",
    "Outbox items processed by the dispatcher",
    ["result"]
)

outbox_pending = Gauge(
    "lucky_triple_outbox_pending",
    "Outbox items waiting for delivery"
)
