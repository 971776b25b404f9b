"""
Data generation module.

This module provides:
- Synthetic weather and load observations (SyntheticLoadGenerator)
"""

from loadcast.data.synthetic_generator import SyntheticLoadGenerator

__all__ = [
    'SyntheticLoadGenerator'
]
