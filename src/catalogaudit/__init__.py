"""catalog-audit - artist catalog compliance auditing and remediation."""

__version__ = "0.1.0"
