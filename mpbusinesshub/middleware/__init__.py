"""Request dependencies and exception handlers."""
