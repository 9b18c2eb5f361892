"""exitflow: hostel exit request and clearance workflow engine."""

__version__ = "0.1.0"
