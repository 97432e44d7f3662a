from argparse import Namespace
import sys
import pathlib
import logging
import json
import yaml

from typing import Any, Dict, List, Optional, Union
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_CONFIG_PATH = pathlib.Path.home().joinpath('.geoiplookupconfig.yml')
LOGGER = logging.getLogger(name='GEOIP')

# Extended delegation files, one per RIR.
ARIN = "https://ftp.arin.net/pub/stats/arin/delegated-arin-extended-latest"
RIPE_NCC = "https://ftp.ripe.net/ripe/stats/delegated-ripencc-extended-latest"
APNIC = "https://ftp.apnic.net/stats/apnic/delegated-apnic-extended-latest"
AFRINIC = "https://ftp.apnic.net/stats/afrinic/delegated-afrinic-extended-latest"
LACNIC = "https://ftp.apnic.net/stats/lacnic/delegated-lacnic-extended-latest"

RIR_URLS = [ARIN, RIPE_NCC, APNIC, AFRINIC, LACNIC]


class GeoIPConfigBase(BaseSettings):

    model_config = SettingsConfigDict(
        validate_assignment=True,
        arbitrary_types_allowed=True,
        env_prefix='GEOIP_'
    )

    @classmethod
    def from_yaml(cls, text: str):
        data = yaml.safe_load(text)
        config = None
        try:
            config = data.get('config')
        except AttributeError:
            LOGGER.critical(msg="Could not load YAML Config. Please check the config file.")
        if config is None:
            LOGGER.critical(msg="YAML Config does not contain required key 'config'")
        else:
            config = cls.model_validate(config)
        return config

    def sdict(self):
        # Return serialized dict
        sdict = json.loads(self.model_dump_json(exclude_none=True))
        return sdict

    def yaml(self):
        return yaml.safe_dump(data=self.sdict())

    @classmethod
    def from_file(cls, path: pathlib.Path):
        if not isinstance(path, pathlib.Path):
            path = pathlib.Path(path).resolve()
        config = None
        if not path.exists():
            LOGGER.error(f"Given path for config does not exist: {path}")
        elif path.suffix in ['.yml', '.yaml']:
            config = cls.from_yaml(text=path.read_text())
        else:
            LOGGER.error(msg=f"Cannot determine config file format based on suffix, got {path.suffix=}")
        return config


class GeoIPConfig(GeoIPConfigBase):

    db_path: pathlib.Path = Field(pathlib.Path('geoip.db'))
    data_dir: pathlib.Path = Field(pathlib.Path('.'))
    download_rir_files: bool = Field(True)
    rir_urls: List[str] = Field(default_factory=lambda: list(RIR_URLS))
    http_timeout: Optional[float] = Field(120.0)
    max_workers: Optional[int] = Field(None, gt=0)
    encoding: str = Field('utf-8')
    http_client: Any = Field(None, exclude=True)

    @field_validator('rir_urls')
    @classmethod
    def validate_rir_urls(cls, value):
        if not len(value):
            raise ValueError("At least one RIR URL is required")
        return value

    @field_validator('http_timeout')
    @classmethod
    def validate_http_timeout(cls, value):
        if value is not None and value <= 0:
            value = None
        return value


def get_config(args: Union[Dict, Namespace] = Namespace()) -> GeoIPConfig:
    if isinstance(args, dict):
        args = Namespace(**args)
    config_file_path = getattr(args, 'config_file', None)
    if config_file_path is None:
        config_file_path = DEFAULT_CONFIG_PATH
    config_file_path = pathlib.Path(config_file_path)

    config = None

    if config_file_path.exists():
        LOGGER.debug(msg=f"Settings file {config_file_path} exists, loading_settings.")
        config = GeoIPConfig.from_file(path=config_file_path)
        if config is None:
            LOGGER.critical("Failed to load settings, exiting.")
            sys.exit(1)
    else:
        LOGGER.debug(msg=f"Settings file {config_file_path} does not exists, using defaults.")
        config = GeoIPConfig()

    for field_name in GeoIPConfig.model_fields.keys():
        value = getattr(args, field_name, None)
        if value is not None:
            setattr(config, field_name, value)

    return config
