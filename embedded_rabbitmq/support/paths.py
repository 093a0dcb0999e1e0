"""
Path helpers for download, extraction and installed script locations.
"""

import tempfile
from pathlib import Path

from embedded_rabbitmq.constants import DEFAULT_DOWNLOAD_FOLDER_NAME, SCRIPTS_SUBFOLDER
from embedded_rabbitmq.core.models import OperatingSystem


def get_default_download_folder() -> Path:
    """Get the machine-local artifact cache folder (~/.embeddedrabbitmq)."""
    return Path.home() / DEFAULT_DOWNLOAD_FOLDER_NAME


def get_default_extraction_folder() -> Path:
    """Get the folder artifacts are extracted into by default (system temp dir)."""
    return Path(tempfile.gettempdir())


def get_script_path(app_folder: Path, name: str, os_family: OperatingSystem) -> Path:
    """Get the path of a bundled broker executable.

    Computes: <app_folder>/sbin/<name>, with a ".bat" suffix on Windows.

    Args:
        app_folder: Installed application folder.
        name: Script name (e.g., "rabbitmqctl").
        os_family: Target operating system family.

    Returns:
        Absolute Path to the script.
    """
    file_name = f"{name}.bat" if os_family == OperatingSystem.WINDOWS else name
    return Path(app_folder).resolve() / SCRIPTS_SUBFOLDER / file_name
