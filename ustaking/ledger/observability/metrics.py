# MIT License
# Copyright (c) 2025 Hashborn

"""
Prometheus Metrics Exporter

Metrics:
- Applied / rejected calls per call type
- Stakes created per stake type
- Tokens paid out (cashback, yield, principal)
- Ledger gauges (total staked, stake count, ledger balance, token supply)
"""

from prometheus_client import Counter, Gauge, CollectorRegistry

# Create registry for metrics
metrics_registry = CollectorRegistry()

# ═══════════════════════════════════════════════════════════════════
# CALL METRICS
# ═══════════════════════════════════════════════════════════════════

calls_total = Counter(
    'ustaking_calls_total',
    'Total number of applied calls',
    ['call_type'],
    registry=metrics_registry
)

calls_rejected_total = Counter(
    'ustaking_calls_rejected_total',
    'Total number of rejected calls',
    ['call_type', 'code'],
    registry=metrics_registry
)

# ═══════════════════════════════════════════════════════════════════
# STAKING METRICS
# ═══════════════════════════════════════════════════════════════════

stakes_created_total = Counter(
    'ustaking_stakes_created_total',
    'Total number of stakes created',
    ['stake_type'],
    registry=metrics_registry
)

payouts_total = Counter(
    'ustaking_payouts_total',
    'Tokens paid out by the staking ledger (base units)',
    ['kind'],
    registry=metrics_registry
)

total_staked = Gauge(
    'ustaking_total_staked',
    'Principal currently locked (base units)',
    registry=metrics_registry
)

stake_count = Gauge(
    'ustaking_stake_count',
    'Number of stake records ever created',
    registry=metrics_registry
)

ledger_balance = Gauge(
    'ustaking_ledger_balance',
    'Token balance held by the staking ledger (base units)',
    registry=metrics_registry
)

# ═══════════════════════════════════════════════════════════════════
# TOKEN METRICS
# ═══════════════════════════════════════════════════════════════════

token_total_supply = Gauge(
    'ustaking_token_total_supply',
    'Token total supply (base units)',
    registry=metrics_registry
)


# ═══════════════════════════════════════════════════════════════════
# HELPER FUNCTIONS
# ═══════════════════════════════════════════════════════════════════

def record_call(call_type: str):
    calls_total.labels(call_type=call_type).inc()


def record_rejection(call_type: str, code: str):
    calls_rejected_total.labels(call_type=call_type, code=code).inc()


def record_stake(stake_type: int):
    stakes_created_total.labels(stake_type=str(stake_type)).inc()


def record_payout(kind: str, amount: int):
    if amount > 0:
        payouts_total.labels(kind=kind).inc(amount)


def update_metrics(node):
    """
    Refresh gauges from node state. Called on every scrape.

    Args:
        node: StakingNode instance
    """
    staking = node.staking
    total_staked.set(staking.total_staked())
    stake_count.set(staking.stake_count())
    ledger_balance.set(node.token.balance_of(staking.address))
    token_total_supply.set(node.token.total_supply)
