"""I/O: remote API clients."""
