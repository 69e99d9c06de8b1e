"""Converter backends; importing a module registers its backends."""
