"""Scan sessions: check results, tallies and the runner that isolates checks."""
