"""Homescreen CMS — layout composition and rendering backend for the mobile app."""

__version__ = "1.0.0"
