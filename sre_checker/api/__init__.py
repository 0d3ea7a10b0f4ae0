"""Status feed API."""
