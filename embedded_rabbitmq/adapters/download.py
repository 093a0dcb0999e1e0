"""
Artifact download with a machine-local cache.

A non-empty file at the target path is treated as a valid cached artifact and
returned without touching the network. Otherwise the artifact is streamed
straight into the target file; on failure the partial file can be removed so
a later run does not mistake it for a cache entry.

Concurrent downloads into the same target are not coordinated here.
"""

import logging
from contextlib import nullcontext
from pathlib import Path
from typing import Optional, Union

import httpx

from embedded_rabbitmq.constants import DEFAULT_DOWNLOAD_CHUNK_SIZE
from embedded_rabbitmq.core.exceptions import DownloadError

logger = logging.getLogger(__name__)


def is_cached(target: Union[str, Path]) -> bool:
    """True when target exists as a non-empty file."""
    path = Path(target)
    return path.is_file() and path.stat().st_size > 0


def delete_cached_artifact(target: Union[str, Path]) -> bool:
    """
    Remove a (possibly partial) downloaded artifact.

    Returns:
        True if a file was removed, False if there was nothing to remove.
    """
    path = Path(target)
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"Could not delete downloaded file {path}: {e}")
        return False
    logger.warning(f"Deleted downloaded file {path}")
    return True


def build_download_client(
    connect_timeout: float,
    read_timeout: float,
    proxy: Optional[str] = None,
) -> httpx.Client:
    """Create an httpx.Client with connect/read timeouts and an optional proxy."""
    return httpx.Client(
        timeout=httpx.Timeout(read_timeout, connect=connect_timeout),
        proxy=proxy,
        follow_redirects=True,
    )


def fetch_artifact(
    url: str,
    target: Union[str, Path],
    connect_timeout: float,
    read_timeout: float,
    proxy: Optional[str] = None,
    use_cache: bool = True,
    delete_on_error: bool = True,
    client: Optional[httpx.Client] = None,
) -> Path:
    """
    Download an artifact to a local file, reusing a cached copy when allowed.

    Args:
        url: Artifact URL.
        target: Local file to write.
        connect_timeout: Seconds allowed to establish the connection.
        read_timeout: Seconds allowed between received chunks.
        proxy: Optional proxy URL (e.g., "http://proxy:3128").
        use_cache: Return an existing non-empty target without downloading.
        delete_on_error: Remove the partial target when the download fails.
        client: Optional preconfigured client (not closed by this function).

    Returns:
        Path to the local artifact.

    Raises:
        DownloadError: On network, HTTP status, timeout or filesystem failure.
    """
    target = Path(target)

    if use_cache and is_cached(target):
        logger.info(f"Using cached artifact {target}")
        return target

    logger.info(f"Downloading {url} to {target}")

    if client is None:
        try:
            client_context = build_download_client(connect_timeout, read_timeout, proxy)
        except (ValueError, httpx.InvalidURL) as e:
            logger.error(f"Cannot create download client for {url}: {e}")
            raise DownloadError(url, e) from e
    else:
        client_context = nullcontext(client)

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with client_context as http:
            with http.stream("GET", url) as response:
                response.raise_for_status()
                _write_body(response, target)
    except (httpx.HTTPError, OSError) as e:
        logger.error(f"Download of {url} failed: {e}")
        if delete_on_error:
            delete_cached_artifact(target)
        raise DownloadError(url, e) from e

    logger.info(f"Downloaded {target.stat().st_size} bytes to {target}")
    return target


def _write_body(response: httpx.Response, target: Path) -> None:
    total = int(response.headers.get("Content-Length") or 0)
    received = 0
    next_report = 10

    with open(target, "wb") as fh:
        for chunk in response.iter_bytes(chunk_size=DEFAULT_DOWNLOAD_CHUNK_SIZE):
            fh.write(chunk)
            received += len(chunk)
            if total and received * 100 // total >= next_report:
                logger.debug(f"Downloaded {received * 100 // total}% of {target.name}")
                next_report = (received * 100 // total) // 10 * 10 + 10
