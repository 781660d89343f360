"""
Nova - Voice-driven personal assistant package

This is the root package for Nova, containing shared utilities and the
assistant runtime that turns spoken requests into model replies and actions.

Core modules:
- utils: Environment parsing and small async helpers
- assistant: Session handling, action protocol, memory, contacts and reminders
"""

__version__ = "0.4.2"
