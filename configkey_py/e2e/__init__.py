"""End-to-end tests for configkey-py."""
