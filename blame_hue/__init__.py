"""blame-hue: color source lines by the danger level of their last author."""

__version__ = "0.1.0"
