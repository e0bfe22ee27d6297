"""Value objects and records shared across layers."""
