import gzip
import zlib
import pathlib
from dataclasses import dataclass
from typing import Generator, Iterable, Literal, Optional


FIELD_SEPARATOR = '|'
MIN_FIELDS = 5


@dataclass
class DelegationRecord:
    registry: str
    country: str
    ip_version: str
    start: str
    value: str


class DelegationLoader:

    @staticmethod
    def read_plaintext(file: pathlib.Path, encoding: str = 'utf-8') -> Generator[str, None, None]:
        with file.open(mode='r', encoding=encoding) as f:
            for line in f:
                yield line.strip()

    @staticmethod
    def read_gzip(file: pathlib.Path, encoding: str = 'utf-8') -> Generator[str, None, None]:
        with gzip.open(file) as f:
            try:
                for line in f:
                    yield line.decode(encoding=encoding).strip()
            except (EOFError, zlib.error) as e:
                raise OSError(f"Corrupt gzip file {file}: {e}") from e

    @staticmethod
    def determine_filetype(file: pathlib.Path) -> Literal['plain', 'gz']:
        # RIR files usually carry no suffix at all
        if file.suffix in ['.gz']:
            return 'gz'
        return 'plain'

    @staticmethod
    def read_lines(file: pathlib.Path, compression_type: Literal['plain', 'gz', None] = None, encoding: str = 'utf-8') -> Generator[str, None, None]:
        if compression_type is None:
            compression_type = DelegationLoader.determine_filetype(file=file)

        if compression_type == 'gz':
            return DelegationLoader.read_gzip(file=file, encoding=encoding)
        return DelegationLoader.read_plaintext(file=file, encoding=encoding)

    @staticmethod
    def parse_line(line: str) -> Optional[DelegationRecord]:
        """
        Split one delegation line, e.g. ``apnic|JP|ipv4|1.0.16.0|4096|20110412|allocated``.

        Returns ``None`` for comments and lines with fewer than five fields.
        Header and summary lines are returned as records; their version field
        or address never validates further down.
        """
        if not line or line.startswith('#'):
            return None
        parts = line.split(FIELD_SEPARATOR)
        if len(parts) < MIN_FIELDS:
            return None
        return DelegationRecord(
            registry=parts[0],
            country=parts[1],
            ip_version=parts[2],
            start=parts[3],
            value=parts[4]
        )

    @staticmethod
    def parse_lines(lines: Iterable[str]) -> Generator[DelegationRecord, None, None]:
        for line in lines:
            record = DelegationLoader.parse_line(line=line)
            if record is not None:
                yield record
