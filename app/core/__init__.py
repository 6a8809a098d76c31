"""Core helpers shared by the HTTP layer."""
