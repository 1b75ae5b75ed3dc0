"""SearchGate: authenticated, rate-limited, cached access to article search."""

__version__ = "0.1.0"
