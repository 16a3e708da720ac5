"""Framework adapters for the notification relay."""
