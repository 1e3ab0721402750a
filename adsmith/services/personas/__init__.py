"""Persona store, single-slot regeneration and the manager facade."""
