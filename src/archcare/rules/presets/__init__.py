"""Rule presets shipped with ArchCare."""
