"""
sessionwatch - follow ephemeral preview sessions

A client library and CLI that tracks preview-environment sessions and
incrementally follows their logs over the session service's REST API.
"""

__version__ = "0.4.0.dev0"

# Re-export core models for convenience
from sessionwatch.core.config.models import SessionwatchConfig
from sessionwatch.core.session.models import LifecycleState, Session, SessionView

__all__ = ["SessionwatchConfig", "Session", "SessionView", "LifecycleState", "__version__"]
