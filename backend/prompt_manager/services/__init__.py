"""Service layer: billing reconciliation, membership and quota logic."""
