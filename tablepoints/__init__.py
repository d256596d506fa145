"""Multi-tenant restaurant ordering backend with a prepaid points ledger."""
