"""Contact synchronization between the ERP contact store and commerce platforms."""

__version__ = "0.1.0"
