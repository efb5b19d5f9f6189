"""Core configuration, policy, errors and observability."""
