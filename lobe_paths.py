"""Unified path resolution for all LobeGraph components.

The runtime, the CLI and the tests use this module to determine where state
and knowledge files live on disk, so that different entry points never end up
writing to different locations.

Resolution order (first match wins):
    1. LOBEGRAPH_HOME environment variable
    2. ~/.lobegraph.conf JSON config file  {"lobegraph_home": "/path/..."}
    3. Default: ~/.lobegraph
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional


_CONF_FILE = "~/.lobegraph.conf"
_DEFAULT_HOME = "~/.lobegraph"


def get_lobegraph_home() -> Path:
    """Return the canonical LobeGraph data directory."""
    # 1. Explicit env var
    env_home = os.environ.get("LOBEGRAPH_HOME")
    if env_home:
        return Path(env_home).expanduser().resolve()

    # 2. Persistent config file
    home = read_conf()
    if home and home.strip():
        return Path(home.strip()).expanduser().resolve()

    # 3. Default
    return Path(_DEFAULT_HOME).expanduser().resolve()


def get_state_dir() -> Path:
    return get_lobegraph_home() / "state"


def get_state_path() -> Path:
    """Return the default snapshot file path."""
    return get_state_dir() / "lobes.msgpack"


def get_data_dir() -> Path:
    """Return the directory holding the knowledge base JSON files."""
    return get_lobegraph_home() / "data"


def write_conf(lobegraph_home: str, conf_path: Optional[str] = None) -> Path:
    """Write the config file so all components agree on the home directory.

    Args:
        lobegraph_home: Absolute or expandable path to the data directory.
        conf_path: Override config file location (for testing).

    Returns:
        Path to the written config file.
    """
    target = Path(conf_path or _CONF_FILE).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    data = {"lobegraph_home": str(Path(lobegraph_home).expanduser())}
    target.write_text(json.dumps(data, indent=2) + "\n")
    return target


def read_conf(conf_path: Optional[str] = None) -> Optional[str]:
    """Read the configured lobegraph_home, or None if unset or unreadable."""
    target = Path(conf_path or _CONF_FILE).expanduser()
    if not target.is_file():
        return None
    try:
        data = json.loads(target.read_text())
    except (json.JSONDecodeError, OSError):
        return None
    if not isinstance(data, dict):
        return None
    home = data.get("lobegraph_home")
    return home if isinstance(home, str) else None
