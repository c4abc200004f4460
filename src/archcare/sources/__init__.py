"""Metric sources: everything that touches the running system lives here."""
