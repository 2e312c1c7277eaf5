"""Device-side tooling."""
