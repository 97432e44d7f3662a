import sys
import json
import logging
import argparse
import pathlib
from copy import deepcopy

from geoiplookup.analytics import bulk_lookup, partition_to_df, summarize_by_country, write_csv
from geoiplookup.config import LOGGER, GeoIPConfig, get_config
from geoiplookup.exceptions import GeoIPError, StoreError
from geoiplookup.handler import Handler
from geoiplookup.subnet import AddressFamily

CWD = pathlib.Path.cwd()


def to_path(path_str: str):
    path = None
    path_candidate = pathlib.Path(path_str).resolve()
    if path_candidate.exists():
        path = path_candidate
    else:
        path_candidate = CWD.joinpath(path_str)
        if path_candidate.exists():
            path = path_candidate
        else:
            raise argparse.ArgumentTypeError("Path does not exist")
    return path


class Cli(object):

    def __init__(self, argv: list = None) -> None:
        self.argv = sys.argv[1:] if argv is None else list(argv)
        self.CONFIG: GeoIPConfig = None
        parser = argparse.ArgumentParser(
            description="Country lookups from RIR delegation data",
            usage="geoiplookup <command> [<args>]"
        )
        parser.add_argument('command', help='Subcommand to run. Options: {populate,lookup,export}')
        args = parser.parse_args(self.argv[0:1])
        if args.command.startswith('_') or not callable(getattr(self, args.command, None)):
            print('Unrecognized command')
            parser.print_help()
            sys.exit(1)
        getattr(self, args.command)()

    @property
    def _common_parser(self):
        common_parser = argparse.ArgumentParser()
        common_parser.add_argument(
            '-c',
            '--config-file',
            dest='config_file',
            required=False,
            type=to_path
        )
        common_parser.add_argument(
            '-d',
            '--db-path',
            dest='db_path',
            required=False,
            type=pathlib.Path,
            help="Location of the subnet database"
        )
        common_parser.add_argument(
            '-v',
            '--verbose',
            dest='verbose',
            action='count',
            default=0,
            help="Increase log verbosity"
        )

        return deepcopy(common_parser)

    def _setup(self, args: argparse.Namespace) -> None:
        level = logging.WARNING
        if args.verbose == 1:
            level = logging.INFO
        elif args.verbose > 1:
            level = logging.DEBUG
        logging.basicConfig(level=level, format="%(asctime)s %(name)s %(levelname)s %(message)s")
        self.CONFIG = get_config(args=args)

    def _open_handler(self) -> Handler:
        try:
            return Handler.open(config=self.CONFIG)
        except StoreError as e:
            LOGGER.critical(msg=f"Failed to open database {self.CONFIG.db_path}: {e}")
            sys.exit(1)

    def populate(self):
        parser = self._common_parser
        parser.description = "Download the RIR delegation files and populate the database"
        parser.usage = "geoiplookup populate [<args>]"
        parser.add_argument(
            '--no-download',
            dest='download_rir_files',
            action='store_false',
            default=None,
            help="Reuse RIR files already present in the data directory"
        )
        parser.add_argument(
            '--data-dir',
            dest='data_dir',
            type=pathlib.Path,
            help="Directory the RIR files are stored in"
        )
        args = parser.parse_args(self.argv[1:])
        self._setup(args=args)
        with self._open_handler() as handler:
            try:
                handler.populate_data()
            except GeoIPError as e:
                LOGGER.critical(msg=f"Failed to populate database: {e}")
                sys.exit(1)

    def lookup(self):
        parser = self._common_parser
        parser.description = "Resolve IP addresses to country codes"
        parser.usage = "geoiplookup lookup [<args>] [ip ...]"
        parser.add_argument('ips', nargs='*', help="Addresses to resolve")
        parser.add_argument(
            '-i',
            '--input-file',
            dest='input_files',
            action='append',
            default=[],
            type=to_path,
            help="File with one address per line"
        )
        parser.add_argument(
            '--format',
            dest='format',
            choices=['text', 'json', 'csv'],
            default='text',
            help="Output format"
        )
        parser.add_argument(
            '--summary',
            dest='summary',
            action='store_true',
            default=False,
            help="Output the number of addresses per country"
        )
        args = parser.parse_args(self.argv[1:])
        self._setup(args=args)
        ips = list(args.ips)
        for input_file in args.input_files:
            ips.extend(x.strip() for x in input_file.read_text().splitlines() if x.strip())
        if not ips:
            parser.error("No addresses given")

        with self._open_handler() as handler:
            df = bulk_lookup(handler=handler, ips=ips)
        if args.summary:
            df = summarize_by_country(df=df)

        if args.format == 'csv':
            print(df.to_csv(index=False), end='')
        elif args.format == 'json':
            for record in df.to_dict(orient='records'):
                print(json.dumps(record, default=str))
        else:
            for row in df.itertuples(index=False):
                print(*row, sep='\t')

    def export(self):
        parser = self._common_parser
        parser.description = "Write the subnets of one address family to CSV"
        parser.usage = "geoiplookup export [<args>]"
        parser.add_argument(
            '--family',
            dest='family',
            choices=[x.tag for x in AddressFamily],
            default=AddressFamily.V4.tag
        )
        parser.add_argument('-o', '--output-file', dest='output_file', required=True, type=pathlib.Path)
        args = parser.parse_args(self.argv[1:])
        self._setup(args=args)
        with self._open_handler() as handler:
            try:
                df = partition_to_df(store=handler.store, partition=args.family)
            except StoreError as e:
                LOGGER.critical(msg=f"Failed to export {args.family}: {e}")
                sys.exit(1)
        write_csv(path=args.output_file, df=df)
        print(f"Exported {len(df)} subnets to {args.output_file}")


def main():
    Cli()
