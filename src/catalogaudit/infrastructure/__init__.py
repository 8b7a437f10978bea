"""Infrastructure layer - persistence, imaging, NFO, providers, events."""
