"""
Runtime wiring: loads the classifier model once and builds the services.
"""

from .context import RuntimeContext, build_runtime

__all__ = ["RuntimeContext", "build_runtime"]
