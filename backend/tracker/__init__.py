"""Live tournament tracker: reconciliation, persistence and the polling loop."""
