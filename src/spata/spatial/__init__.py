# src/spata/spatial/__init__.py

"""
Spatial operations on spot coordinates.

Modules
-------
- smoothing: Local linear smoothing of per-spot values
"""

from .smoothing import smooth_values, smooth_columns

__all__ = ['smooth_values', 'smooth_columns']
