"""Automator: AI-generated course materials for trainers."""

__version__ = "0.1.0"
