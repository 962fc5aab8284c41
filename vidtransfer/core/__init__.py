"""Configuration, exceptions and cross-cutting decorators."""
