"""Drivers that run lifecycle operations against the platform."""
