"""Observability utilities for the live interview stack."""
from .logger import log_event

__all__ = ["log_event"]
