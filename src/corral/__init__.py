"""Corral: live status dashboard backend for lasso-managed agent sessions."""

__version__ = "0.3.0"
