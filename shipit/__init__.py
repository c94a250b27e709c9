"""shipit: release orchestration with a compensating operation ledger."""

__version__ = "0.1.0"
