"""Errors that cross service boundaries."""


class HydrationError(RuntimeError):
    """Display fields for ranked ids could not be loaded from the store."""
