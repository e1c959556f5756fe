"""GarageCanvas: vehicle photo to poster-art wallpaper pack."""

__version__ = "0.1.0"
