import pytest
import requests

from geoiplookup.exceptions import FetchError
from geoiplookup.fetcher import download_file
from tests.conftest import ARIN_DATA, ARIN_URL, FakeHTTPClient, FakeResponse


def test_download_file(tmp_path):
    client = FakeHTTPClient(responses={ARIN_URL: (200, ARIN_DATA)})
    path = download_file(client=client, url=ARIN_URL, path=tmp_path.joinpath("arin"), timeout=10)
    assert path.read_text() == ARIN_DATA
    assert client.calls == [{'url': ARIN_URL, 'stream': True, 'timeout': 10}]


def test_download_file_bad_status(tmp_path):
    client = FakeHTTPClient(responses={ARIN_URL: (503, "")})
    with pytest.raises(FetchError) as excinfo:
        download_file(client=client, url=ARIN_URL, path=tmp_path.joinpath("arin"))
    assert excinfo.value.status_code == 503
    assert not tmp_path.joinpath("arin").exists()


def test_download_file_transport_error(tmp_path, connection_error):
    client = FakeHTTPClient(responses={ARIN_URL: connection_error})
    with pytest.raises(FetchError) as excinfo:
        download_file(client=client, url=ARIN_URL, path=tmp_path.joinpath("arin"))
    assert excinfo.value.url == ARIN_URL
    assert excinfo.value.__cause__ is connection_error


def test_download_file_local_write_error(tmp_path):
    client = FakeHTTPClient(responses={ARIN_URL: (200, ARIN_DATA)})
    with pytest.raises(FetchError, match="local file"):
        download_file(client=client, url=ARIN_URL, path=tmp_path.joinpath("missing", "arin"))


class BrokenResponse(FakeResponse):

    def iter_content(self, chunk_size: int = 1):
        yield self.content[:10]
        raise requests.ConnectionError("connection reset by peer")


class BrokenHTTPClient(FakeHTTPClient):

    def get(self, url, stream=False, timeout=None):
        self.calls.append({'url': url, 'stream': stream, 'timeout': timeout})
        return BrokenResponse(status_code=200, content=b"arin|US|ipv4|3.0.0.0|16777216\n")


def test_interrupted_download_keeps_previous_file(tmp_path):
    path = tmp_path.joinpath("delegated-arin-extended-latest")
    path.write_text(ARIN_DATA)
    client = BrokenHTTPClient(responses={})
    with pytest.raises(FetchError, match="Failed to read"):
        download_file(client=client, url=ARIN_URL, path=path)
    assert path.read_text() == ARIN_DATA
    assert [x.name for x in tmp_path.iterdir()] == ["delegated-arin-extended-latest"]


def test_download_replaces_previous_file(tmp_path):
    path = tmp_path.joinpath("delegated-arin-extended-latest")
    path.write_text("stale\n")
    client = FakeHTTPClient(responses={ARIN_URL: (200, ARIN_DATA)})
    download_file(client=client, url=ARIN_URL, path=path)
    assert path.read_text() == ARIN_DATA
    assert [x.name for x in tmp_path.iterdir()] == ["delegated-arin-extended-latest"]
