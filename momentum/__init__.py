"""Client-side state layer for the Momentum team-productivity tracker."""

__version__ = "0.1.0"
