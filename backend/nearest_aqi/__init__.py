# backend/nearest_aqi/__init__.py
"""Nearest active air-quality monitoring station lookup with US AQI, served over FastAPI."""

__version__ = "0.1.0"
