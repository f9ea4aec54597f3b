"""Real-time tracking of backend invoice-extraction jobs.

Entry point for most callers is :class:`jobtrack.application.container.Container`.
"""

__version__ = "0.1.0"
