"""wordwanderer-economy — Progression economy engine for lessons, hearts and gems."""
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("wordwanderer-economy")
except PackageNotFoundError:
    __version__ = "0.0.0"
