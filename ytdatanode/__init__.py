"""Storage data node toolkit: message framing, token pools, configuration, logs and updates."""

__version__ = "1.0.8"