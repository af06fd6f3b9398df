"""Cell tower lookups against PostGIS and KMZ export for Google Earth."""

__version__ = "0.1.0"
