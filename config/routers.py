"""
Custom DRF Router to avoid converter registration conflict.

DRF's DefaultRouter uses format_suffix_patterns which registers a custom
converter 'drf_format_suffix'. When multiple routers exist across apps,
this causes a ValueError: "Converter 'drf_format_suffix' is already registered."
"""

from rest_framework.routers import DefaultRouter


class SafeDefaultRouter(DefaultRouter):
    """
    DefaultRouter that doesn't use format suffix patterns.

    The articles and tags routers are both mounted, so neither may register
    the suffix converter.
    """
    include_format_suffixes = False
