"""Configuration, logging, security and background primitives."""
