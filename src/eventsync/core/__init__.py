"""Ambient service concerns: structured logging, tracing and metrics."""
