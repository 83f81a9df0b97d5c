"""HTTP API for the SporeTag service."""
