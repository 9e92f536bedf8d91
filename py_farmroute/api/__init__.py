"""HTTP interface for route planning."""
