"""Export requirements registry: phytosanitary and commercial requirements by country and crop."""

__version__ = "0.1.0"
