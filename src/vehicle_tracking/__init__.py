"""Analysis core for a live transit vehicle tracker."""

__version__ = "0.1.0"
