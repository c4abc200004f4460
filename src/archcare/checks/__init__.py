"""Check catalogues: one scan per module, each exposing ``SCAN``."""
