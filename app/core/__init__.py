"""Configuration, security primitives and request dependencies."""
