"""Map annotation tool: drawing, selection and GeoJSON persistence."""

__version__ = "0.1.0"
