"""Typed component configuration."""
