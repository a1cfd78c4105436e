"""Domain layer: canonical names, provenance, reconciliation and fetching."""
