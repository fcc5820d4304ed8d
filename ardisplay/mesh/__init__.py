"""Mesh inspection for ardisplay."""

from .inspect import ModelInspector

__all__ = ["ModelInspector"]
