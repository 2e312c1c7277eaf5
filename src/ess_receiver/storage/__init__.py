"""Request log storage."""
