"""Multi-channel notification delivery engine."""
