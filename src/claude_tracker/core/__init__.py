"""Core session tracking logic."""
