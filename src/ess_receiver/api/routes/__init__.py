"""Device-facing routes and admin routes."""
