"""Session storage backends."""
