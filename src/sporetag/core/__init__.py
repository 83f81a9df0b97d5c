"""Core configuration for the SporeTag service."""
