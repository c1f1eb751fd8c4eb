"""Settings and configuration schemas."""
