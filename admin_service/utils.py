"""Utility functions for common operations across the application."""


def normalize_email(email: str) -> str:
    """Convert email to lowercase and strip whitespace."""
    return email.strip().lower()


def total_pages(total: int, limit: int) -> int:
    """Number of pages needed for ``total`` items; an empty listing still has one page."""
    return max((total + limit - 1) // limit, 1)
