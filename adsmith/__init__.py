"""Persona and portrait generation pipeline for the campaign intake wizard."""

__version__ = "0.1.0"
