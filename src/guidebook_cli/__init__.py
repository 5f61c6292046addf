"""Guidebook CLI - select, render and lint markdown guide corpora."""

__version__ = "0.3.0"
