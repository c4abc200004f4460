"""State-changing maintenance actions and the confirmation policy."""
