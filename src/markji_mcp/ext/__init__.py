"""Integrations that expose the tool registry to external protocols."""
