"""
envref — secret references for layered .env files.

Keep ref:// tokens in the files you commit. Keep the values in a real
secret store. Resolve them together when the process needs them, and
share a snapshot with your team through a PGP-encrypted sync file.
"""

import os

__version__ = "0.1.0"
__author__ = "envref contributors"

CONFIG_FILE_NAME = ".envref.yaml"
CONFIG_DIR_ENV = "ENVREF_CONFIG_DIR"
GLOBAL_CONFIG_NAME = "config.yaml"


def config_dir() -> str:
    """Return the user-level envref config directory.

    Resolution order: ``$ENVREF_CONFIG_DIR``, ``$XDG_CONFIG_HOME/envref``,
    then ``~/.config/envref``.
    """
    explicit = os.environ.get(CONFIG_DIR_ENV)
    if explicit:
        return explicit
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return os.path.join(xdg, "envref")
    return os.path.join(os.path.expanduser("~"), ".config", "envref")
