"""Task declarations for the build scheduler."""
