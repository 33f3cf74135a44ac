"""
catering_config -- runtime settings for the catering scheduler.

``load_settings()`` is the single entry point; nothing else reads
configuration files or ``CATERING_*`` environment variables.
"""

from catering_config.settings import Settings, load_settings

__all__ = ["Settings", "load_settings"]
