"""Business services for the points ledger and order flow."""
