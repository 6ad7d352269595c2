"""Utilities package for the Costbook application."""
