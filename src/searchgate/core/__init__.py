"""Configuration, logging, errors and metrics shared across SearchGate."""
