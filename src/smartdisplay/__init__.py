"""SmartDisplay core: local control plane for the wall display."""

__version__ = "1.0.0"
