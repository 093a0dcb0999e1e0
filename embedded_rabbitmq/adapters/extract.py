"""
Archive extraction into the broker workspace.

Extraction is skipped when the expected app folder is already populated.
A failed extraction leaves whatever was written in place.
"""

import logging
import lzma
import os
import tarfile
import zipfile
import zlib
from pathlib import Path
from typing import Union

from embedded_rabbitmq.core.exceptions import ExtractionError

logger = logging.getLogger(__name__)

ZIP_SUFFIXES = (".zip",)
TAR_SUFFIXES = (".tar", ".tar.gz", ".tgz", ".tar.bz2", ".tbz2", ".tar.xz", ".txz")

# Corrupt compressed members raise LZMAError / zlib.error partway through extraction
EXTRACTION_ERRORS = (
    tarfile.TarError,
    zipfile.BadZipFile,
    lzma.LZMAError,
    zlib.error,
    EOFError,
    OSError,
)


def is_extracted(app_folder: Union[str, Path]) -> bool:
    """True when app_folder exists and has at least one entry."""
    path = Path(app_folder)
    return path.is_dir() and any(path.iterdir())


def detect_archive_format(archive: Path) -> str:
    """
    Detect the archive format, by extension first and then by content.

    Returns:
        "zip" or "tar".

    Raises:
        ExtractionError: If the format is not supported.
    """
    name = archive.name.lower()
    if name.endswith(ZIP_SUFFIXES):
        return "zip"
    if name.endswith(TAR_SUFFIXES):
        return "tar"

    try:
        if zipfile.is_zipfile(archive):
            return "zip"
        if tarfile.is_tarfile(archive):
            return "tar"
    except OSError as e:
        raise ExtractionError(archive, e) from e

    raise ExtractionError(archive, "unsupported archive format")


def extract_archive(
    archive: Union[str, Path],
    destination_root: Union[str, Path],
    app_folder_name: str,
) -> Path:
    """
    Unpack an artifact so that <destination_root>/<app_folder_name> exists.

    Args:
        archive: Downloaded archive (zip or tar, optionally compressed).
        destination_root: Folder to extract into.
        app_folder_name: Top-level folder the archive is expected to contain.

    Returns:
        Path to the installed app folder.

    Raises:
        ExtractionError: If the archive is unreadable, unsupported, or does
            not contain app_folder_name.
    """
    archive = Path(archive)
    destination_root = Path(destination_root)
    app_folder = destination_root / app_folder_name

    if is_extracted(app_folder):
        logger.info(f"Skipping extraction, {app_folder} already exists")
        return app_folder

    if not archive.is_file():
        raise ExtractionError(archive, "archive file not found")

    archive_format = detect_archive_format(archive)
    logger.info(f"Extracting {archive} into {destination_root}")

    try:
        destination_root.mkdir(parents=True, exist_ok=True)
        if archive_format == "zip":
            _extract_zip(archive, destination_root)
        else:
            with tarfile.open(archive, mode="r:*") as tar:
                tar.extractall(destination_root, filter="data")
    except EXTRACTION_ERRORS as e:
        logger.error(f"Extraction of {archive} failed: {e}")
        raise ExtractionError(archive, e) from e

    if not app_folder.is_dir():
        raise ExtractionError(
            archive, f"expected folder '{app_folder_name}' not found after extraction"
        )

    logger.info(f"Extracted {archive.name} to {app_folder}")
    return app_folder


def _extract_zip(archive: Path, destination_root: Path) -> None:
    # zipfile ignores unix permissions; restore them from external_attr
    with zipfile.ZipFile(archive) as zf:
        for info in zf.infolist():
            extracted = zf.extract(info, destination_root)
            mode = (info.external_attr >> 16) & 0o777
            if mode and not info.is_dir() and os.name != "nt":
                os.chmod(extracted, mode)
