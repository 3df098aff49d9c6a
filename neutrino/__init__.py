"""Header, filter-header and compact-filter storage for light Bitcoin clients."""

__version__ = "0.1.0"