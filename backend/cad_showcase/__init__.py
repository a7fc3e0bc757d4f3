"""CAD upload conversion service: STEP/IGES to STL through external geometry toolkits."""

__version__ = "0.1.0"
