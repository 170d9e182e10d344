"""
rangebars - labeled range bar datasets from futures tick archives.

Ticks are compressed into price-displacement bars per trading session and
every bar is labeled with its maximum favorable excursion before a fixed
point retracement.
"""

from .core.constants import VERSION

__version__ = VERSION

__all__ = ["__version__"]
