"""Recipe acquisition, caching and build bridge for container recipes."""

__version__ = "0.1.0"
