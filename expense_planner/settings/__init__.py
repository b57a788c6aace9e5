"""Engine settings files and loaders.

Thresholds and defaults used by the calculators are stored as JSON next to
this module so they can be tuned without code changes.
"""

from .defaults import get_config_value, get_engine_config, load_config

__all__ = ['load_config', 'get_engine_config', 'get_config_value']
