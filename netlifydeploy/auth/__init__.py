"""Token storage."""
