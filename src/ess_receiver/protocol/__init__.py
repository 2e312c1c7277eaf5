"""Device payload grammars and record types."""
