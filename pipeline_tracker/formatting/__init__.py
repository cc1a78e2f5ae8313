"""Message formatting."""
