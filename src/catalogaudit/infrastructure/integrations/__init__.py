"""HTTP integrations."""
