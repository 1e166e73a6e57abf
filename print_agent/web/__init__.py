"""
Web module for the print agent.

Exposes blueprints for:
- Print API (list printers, HTML print, thermal print): api_bp
- Lifecycle control (graceful shutdown): control_bp
- Health endpoint: health_bp
"""

from .api import api_bp
from .control import control_bp
from .health import health_bp

__all__ = ["api_bp", "control_bp", "health_bp"]
