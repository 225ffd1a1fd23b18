"""One-time-code verification and contact reconciliation core."""
