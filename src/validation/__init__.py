"""Multi-seed parity validation."""
