"""
Bench Kernel

Shared foundation of the engagement lifecycle:
- Typed exceptions with machine-readable codes
- Structured JSON logging
- Database base classes, engine and session scope
- Clock, workflow and acting-identity value objects
- Companies, listings, notifications and processed payments
"""

__version__ = "0.1.0"
