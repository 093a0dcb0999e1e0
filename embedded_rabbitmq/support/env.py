"""
Environment variable helpers for subprocess management.

Every broker and runtime command inherits the current process environment
with the configured variables laid on top.
"""

import os
from typing import Dict, Mapping, Optional


def build_process_env(
    overrides: Optional[Mapping[str, str]] = None,
    base: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """Build the environment for a subprocess.

    Args:
        overrides: Variables to set; these always win over inherited values.
        base: Environment to start from (default: os.environ).

    Returns:
        Dictionary suitable for subprocess.Popen(env=...).
    """
    env = dict(os.environ if base is None else base)
    for key, value in (overrides or {}).items():
        env[str(key)] = str(value)
    return env
