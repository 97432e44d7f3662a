import pathlib

import pytest
import requests

from geoiplookup.config import GeoIPConfig
from geoiplookup.handler import Handler


APNIC_URL = "https://rir.example.test/stats/apnic/delegated-apnic-extended-latest"
ARIN_URL = "https://rir.example.test/pub/stats/arin/delegated-arin-extended-latest"

APNIC_DATA = """\
2|apnic|20240101|6|19830613|20231231|+1000
apnic|*|asn|*|1|summary
apnic|*|ipv4|*|3|summary
apnic|*|ipv6|*|1|summary
# comment line
apnic|JP|asn|173|1|20020801|allocated|A91
apnic|AU|ipv4|1.0.0.0|256|20110811|assigned|A91
apnic|JP|ipv4|1.0.16.0|4096|20110412|allocated|A92
apnic|CN|ipv6|2001:250::|35|20000426|allocated|A93
apnic||ipv4|1.0.64.0|256||available
broken|line
apnic|KR|ipv4|1.11.0.0|lots|20110101|allocated|A94
apnic|KR|ipv4|1.300.0.0|256|20110101|allocated|A95
"""

ARIN_DATA = """\
2|arin|20240101|3|19830101|20231231|-0500
arin|*|ipv4|*|2|summary
arin|US|ipv4|3.0.0.0|16777216|19880223|allocated|abc
arin|CA|ipv4|3.1.0.0|65536|19900101|assigned|def
arin|US|ipv6|2600::|12|20060302|allocated|ghi
"""


class FakeResponse:

    def __init__(self, status_code: int, content: bytes) -> None:
        self.status_code = status_code
        self.content = content
        self.closed = False

    def iter_content(self, chunk_size: int = 1):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i:i + chunk_size]

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


class FakeHTTPClient:
    """Stands in for ``requests.Session``; maps URL to (status, body) or an exception."""

    def __init__(self, responses: dict) -> None:
        self.responses = responses
        self.calls = []

    def get(self, url, stream=False, timeout=None):
        self.calls.append({'url': url, 'stream': stream, 'timeout': timeout})
        response = self.responses[url]
        if isinstance(response, Exception):
            raise response
        status_code, body = response
        return FakeResponse(status_code=status_code, content=body.encode('utf-8'))

    def close(self):
        pass


@pytest.fixture(autouse=True)
def no_user_config(monkeypatch, tmp_path_factory):
    missing = tmp_path_factory.mktemp('home').joinpath('.geoiplookupconfig.yml')
    monkeypatch.setattr('geoiplookup.config.DEFAULT_CONFIG_PATH', missing)


@pytest.fixture
def data_dir(tmp_path) -> pathlib.Path:
    path = tmp_path.joinpath('data')
    path.mkdir()
    return path


@pytest.fixture
def rir_files(data_dir):
    data_dir.joinpath('delegated-apnic-extended-latest').write_text(APNIC_DATA)
    data_dir.joinpath('delegated-arin-extended-latest').write_text(ARIN_DATA)
    return data_dir


@pytest.fixture
def config(tmp_path, data_dir) -> GeoIPConfig:
    return GeoIPConfig(
        db_path=tmp_path.joinpath('geoip.db'),
        data_dir=data_dir,
        download_rir_files=False,
        rir_urls=[APNIC_URL, ARIN_URL]
    )


@pytest.fixture
def handler(config):
    handler = Handler(config=config)
    yield handler
    handler.close()


@pytest.fixture
def connection_error():
    return requests.ConnectionError("connection refused")
