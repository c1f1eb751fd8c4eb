"""Domain model: descriptors, lifecycle and error kinds."""
