import os
import pathlib
import tempfile

import requests

from geoiplookup.config import LOGGER
from geoiplookup.exceptions import FetchError


CHUNK_SIZE = 64 * 1024


def download_file(client: requests.Session, url: str, path: pathlib.Path, timeout: float = None) -> pathlib.Path:
    """
    Stream ``url`` into ``path``.

    The body goes to a temporary file next to ``path`` which replaces it only
    once the transfer is complete, so a failed download keeps the old file.
    """
    LOGGER.info(msg=f"Downloading {url} to {path}")
    try:
        response = client.get(url, stream=True, timeout=timeout)
    except requests.RequestException as e:
        raise FetchError(url=url, message=f"Failed to get geoip data from {url}: {e!r}") from e
    with response:
        if response.status_code != 200:
            raise FetchError(
                url=url,
                message=f"Failed to get geoip data from {url} with status {response.status_code}",
                status_code=response.status_code
            )
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".part", dir=path.parent)
        except OSError as e:
            raise FetchError(url=url, message=f"Failed to create local file {path}: {e!r}") from e
        try:
            with os.fdopen(fd, mode='wb') as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
            os.replace(tmp_name, path)
        except requests.RequestException as e:
            os.unlink(tmp_name)
            raise FetchError(url=url, message=f"Failed to read geoip data from {url}: {e!r}") from e
        except OSError as e:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise FetchError(url=url, message=f"Failed to create local file {path}: {e!r}") from e
    return path
