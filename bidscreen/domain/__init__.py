"""Domain layer: auction and account models free of storage concerns."""
