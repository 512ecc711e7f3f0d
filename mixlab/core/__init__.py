"""Core layer: errors, settings, adapters."""
