"""Interactive mode loop for networked color-changing lights."""

__version__ = "0.1.0"
