"""Per-site reconciliation of source boundaries into site records."""
