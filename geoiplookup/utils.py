import pathlib
import posixpath
from urllib.parse import urlparse
from concurrent.futures import Future, as_completed
from typing import Iterable, List, Optional


def filename_from_url(url: str) -> str:
    name = posixpath.basename(urlparse(url).path.rstrip('/'))
    if not name:
        raise ValueError(f"Cannot derive a file name from URL {url}")
    return name


def local_path_for_url(url: str, data_dir: pathlib.Path) -> pathlib.Path:
    return pathlib.Path(data_dir).joinpath(filename_from_url(url))


def wait_all(futures: Iterable[Future]) -> List:
    """
    Wait until every future is done and re-raise the first exception seen.

    Running siblings are not cancelled when one fails; they run to completion
    before the error surfaces. Results are returned in completion order.
    """
    first_error: Optional[BaseException] = None
    results = []
    for future in as_completed(list(futures)):
        error = future.exception()
        if error is not None:
            if first_error is None:
                first_error = error
            continue
        results.append(future.result())
    if first_error is not None:
        raise first_error
    return results
