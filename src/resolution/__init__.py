"""Per-build memoized dependency resolution."""
