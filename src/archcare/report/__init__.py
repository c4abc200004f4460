"""Console reporting and append-only maintenance logs."""
