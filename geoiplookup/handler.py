import pathlib
from concurrent.futures import ThreadPoolExecutor
from typing import Tuple

import requests

from geoiplookup.common import DelegationLoader, DelegationRecord
from geoiplookup.config import LOGGER, GeoIPConfig
from geoiplookup.exceptions import GeoIPError, MissingPartitionError, PopulateError, StoreError
from geoiplookup.fetcher import download_file
from geoiplookup.store import SubnetStore
from geoiplookup.subnet import (
    UNKNOWN_COUNTRY,
    AddressFamily,
    derive_subnet_key,
    family_for_tag,
    mask_to_prefix,
    parse_address,
)
from geoiplookup.utils import local_path_for_url, wait_all


class Handler:
    """
    Country lookups against RIR delegation data kept in a ``SubnetStore``.

    The store is opened on construction and stays open until ``close``.
    ``lookup`` is safe to call from several threads, also while
    ``populate_data`` is running.
    """

    def __init__(self, config: GeoIPConfig = None) -> None:
        self.config = config if config is not None else GeoIPConfig()
        self.store = SubnetStore(path=self.config.db_path)
        self.http_client = self.config.http_client
        self._owns_http_client = False

    @classmethod
    def open(cls, config: GeoIPConfig = None) -> "Handler":
        return cls(config=config)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def close(self) -> None:
        self.store.close()
        if self._owns_http_client and self.http_client is not None:
            self.http_client.close()
            self.http_client = None
            self._owns_http_client = False

    def lookup(self, ip: str) -> str:
        """Return the country code of the most specific stored subnet containing ``ip``, or ``"NA"``."""
        parsed = parse_address(ip)
        if parsed is None:
            return UNKNOWN_COUNTRY
        family, address = parsed
        return self._lookup(address=address, family=family)

    def _lookup(self, address, family: AddressFamily) -> str:
        country_code = UNKNOWN_COUNTRY
        for prefix_length in range(family.bit_width + 1):
            network = mask_to_prefix(address=address, prefix_length=prefix_length, bit_width=family.bit_width)
            try:
                value = self.store.get(partition=family.partition, key=network)
            except MissingPartitionError:
                LOGGER.debug(msg=f"Partition {family.partition} does not exist, store not populated")
                return UNKNOWN_COUNTRY
            except StoreError as e:
                LOGGER.warning(msg=f"Failed to get key {network}: {e}")
                continue
            if value is not None:
                country_code = value
        return country_code

    def create_partition(self, partition: str) -> None:
        self.store.create_partition(partition=partition)

    def populate_data(self) -> None:
        """
        Download the RIR delegation files and load them into the store.

        Raises ``PopulateError`` naming the stage that failed. A failed
        download stage leaves the store untouched.
        """
        for family in AddressFamily:
            try:
                self.create_partition(partition=family.partition)
            except StoreError as e:
                raise PopulateError(stage='partitions', message=f"failed to create {family.partition} partition in db: {e}") from e

        paths = [local_path_for_url(url=url, data_dir=self.config.data_dir) for url in self.config.rir_urls]
        max_workers = self.config.max_workers or len(paths)
        if self.config.download_rir_files:
            self._get_http_client()

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            LOGGER.info(msg=f"Fetching {len(paths)} RIR files")
            futures = [executor.submit(self.fetch_file, url, path) for url, path in zip(self.config.rir_urls, paths)]
            try:
                wait_all(futures)
            except (GeoIPError, OSError) as e:
                raise PopulateError(stage='fetch', message=str(e)) from e

            LOGGER.info(msg=f"Loading {len(paths)} RIR files")
            futures = [executor.submit(self.load_file, path) for path in paths]
            try:
                results = wait_all(futures)
            except (GeoIPError, OSError, UnicodeDecodeError) as e:
                raise PopulateError(stage='load', message=str(e)) from e

        stored = sum(x[0] for x in results)
        skipped = sum(x[1] for x in results)
        LOGGER.info(msg=f"Population done: {stored} subnets stored, {skipped} records skipped")

    def _get_http_client(self):
        if self.http_client is None:
            self.http_client = requests.Session()
            self._owns_http_client = True
        return self.http_client

    def fetch_file(self, url: str, path: pathlib.Path) -> pathlib.Path:
        if not self.config.download_rir_files:
            LOGGER.debug(msg=f"Download disabled, reusing local file {path}")
            return path
        return download_file(client=self._get_http_client(), url=url, path=path, timeout=self.config.http_timeout)

    def load_file(self, path: pathlib.Path) -> Tuple[int, int]:
        LOGGER.info(msg=f"Processing {path}")
        stored = 0
        skipped = 0
        try:
            lines = DelegationLoader.read_lines(file=path, encoding=self.config.encoding)
            for record in DelegationLoader.parse_lines(lines=lines):
                if self.handle_record(record=record):
                    stored += 1
                else:
                    skipped += 1
        finally:
            self.store.release()
        LOGGER.info(msg=f"Processed {path}: {stored} subnets stored, {skipped} records skipped")
        return stored, skipped

    def handle_record(self, record: DelegationRecord) -> bool:
        try:
            family, subnet = self.record_to_subnet(record=record)
        except ValueError as e:
            LOGGER.debug(msg=f"Skipping record {record}: {e}")
            return False
        self.store.put(partition=family.partition, key=subnet, value=record.country)
        return True

    @staticmethod
    def record_to_subnet(record: DelegationRecord) -> Tuple[AddressFamily, str]:
        """
        Derive the partition and canonical subnet key for a delegation record.

        IPv4 records carry a host count, IPv6 records carry the prefix length.
        Raises ``ValueError`` for records that can not be stored.
        """
        family = family_for_tag(record.ip_version)
        if family is None:
            raise ValueError(f"Unrecognised ip version {record.ip_version!r}")
        if not record.country or record.country == '*':
            raise ValueError("Missing country code")
        address = family.address_class(record.start)
        value = int(record.value)
        if family is AddressFamily.V4:
            subnet = derive_subnet_key(start_address=str(address), count=value, bit_width=family.bit_width)
        else:
            subnet = mask_to_prefix(address=address, prefix_length=value, bit_width=family.bit_width)
        return family, subnet
