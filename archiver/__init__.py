"""Archive git pushes into versioned object storage with a provenance trail."""

__version__ = "0.1.0"
