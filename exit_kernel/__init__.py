"""
Exit Kernel

Shared foundation for employee exit processing:
- Typed exceptions with machine-readable codes
- Structured JSON logging
- SQLAlchemy base classes and engine management
- Caller identity, clock and workflow value objects
- Hash-chained activity log per exit request
"""

__version__ = "0.1.0"
