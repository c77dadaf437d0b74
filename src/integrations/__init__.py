"""Integrations with the registry and the orchestration platform."""
