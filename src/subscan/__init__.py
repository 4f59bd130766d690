"""SubScan: recurring-charge extraction and scheduling for bank statements."""

__version__ = "0.1.0"
