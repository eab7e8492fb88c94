"""DocMeta CLI: dependency graph analytics over per-folder documentation records."""

__version__ = "0.4.0"
