"""Email notifications and reports."""
