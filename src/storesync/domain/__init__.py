"""Domain layer: entity families, diffing and reconciliation."""
