# nft_vault/monitoring.py
from prometheus_client import Counter, Gauge, Histogram, CollectorRegistry, generate_latest


class Monitor:
    """Prometheus metrics for one ledger, kept in an isolated registry."""

    def __init__(self, ledger):
        self.ledger = ledger
        self.registry = CollectorRegistry()

        self.op_counter = Counter('vault_operations_total', 'Operations executed', ['operation', 'status'], registry=self.registry)
        self.op_latency = Histogram('vault_operation_latency_seconds', 'Time to execute an operation', ['operation'], registry=self.registry)
        self.height = Gauge('vault_height', 'Current ledger height', registry=self.registry)
        self.assets_minted = Gauge('vault_assets_minted', 'Assets issued so far', registry=self.registry)
        self.custody_balance = Gauge('vault_custody_balance', 'Collateral and undistributed yield held in custody', registry=self.registry)

    def record_op(self, operation: str, status: str, latency: float):
        self.op_counter.labels(operation=operation, status=status).inc()
        self.op_latency.labels(operation=operation).observe(latency)

    def update(self):
        """Refresh gauges from committed state."""
        self.height.set(self.ledger.height)
        self.assets_minted.set(self.ledger.last_asset_id())
        self.custody_balance.set(self.ledger.custody_balance())

    def render(self) -> bytes:
        """Prometheus text exposition of every metric."""
        return generate_latest(self.registry)
