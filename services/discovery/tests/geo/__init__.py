"""Distance and movement-threshold tests."""
