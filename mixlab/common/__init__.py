"""Shared infrastructure: logging and numeric primitives."""
