"""Threshold rules, classification and rule-set loading."""
