"""
Centralized configuration package for cypherhttp.

Process level settings (environment, logging) live here; per client settings
live in ``cypherhttp.client.config``.
"""

from . import constants
from .env import EnvConfig

__all__ = [
  "EnvConfig",
  "constants",
]
