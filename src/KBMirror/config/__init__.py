"""
KBMirror configuration package.

Example:
    from KBMirror.config import load_config

    config = load_config(
        path="kbmirror.yaml",
        cli_overrides={"dist_dir": "mirror", "ignore_images": True},
    )
"""

from .loader import export_config_schema, load_config
from .models import HttpSettings, MirrorConfig

__all__ = [
    "HttpSettings",
    "MirrorConfig",
    "export_config_schema",
    "load_config",
]
