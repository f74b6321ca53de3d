"""HTTP API for Cadence."""
