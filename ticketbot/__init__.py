"""
Ticket Bot

Reaction-driven intake wizard for guild tickets:
- Configurable ticket types made of typed steps
- Pluggable step types (built-ins + extensions)
- One active session per channel
- JSON document persistence
"""

__version__ = "0.1.0"
