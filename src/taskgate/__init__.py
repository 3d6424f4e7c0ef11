"""TaskGate - multi-user task service with an authorized mutation pipeline."""

__version__ = "0.1.0"
