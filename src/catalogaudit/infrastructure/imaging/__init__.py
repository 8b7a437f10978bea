"""Image processing and artist-folder image storage."""
