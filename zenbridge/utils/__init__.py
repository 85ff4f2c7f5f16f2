"""Shared utilities: exceptions, logging and process locks."""
