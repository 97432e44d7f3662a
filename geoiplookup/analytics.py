import pathlib
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable

import pandas as pd

from geoiplookup.handler import Handler
from geoiplookup.store import SubnetStore
from geoiplookup.subnet import UNKNOWN_COUNTRY


def bulk_lookup(handler: Handler, ips: Iterable[str], max_workers: int = 8) -> pd.DataFrame:
    ips = [str(x).strip() for x in ips]
    chunk_size = max(1, -(-len(ips) // max_workers))
    chunks = [ips[i:i + chunk_size] for i in range(0, len(ips), chunk_size)]

    def lookup_chunk(chunk):
        try:
            return [handler.lookup(x) for x in chunk]
        finally:
            handler.store.release()

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        countries = [x for result in executor.map(lookup_chunk, chunks) for x in result]
    return pd.DataFrame({'ip': ips, 'country': countries}, columns=['ip', 'country'])


def summarize_by_country(df: pd.DataFrame, include_unknown: bool = True) -> pd.DataFrame:
    """
    Count addresses per country.

    Parameters:
        df (pandas.DataFrame): Output of ``bulk_lookup``.
        include_unknown (bool): Keep the ``NA`` row for unresolved addresses.

    Returns:
        pandas.DataFrame: ``country``, ``addresses``, ``unique_ips``, sorted by ``addresses`` descending.
    """
    df_copy = df.copy()
    if not include_unknown:
        df_copy = df_copy[df_copy['country'] != UNKNOWN_COUNTRY]
    summary_df = df_copy.groupby('country').agg(
        addresses=('ip', 'size'),
        unique_ips=('ip', 'nunique')
    ).reset_index()

    summary_df.sort_values(by=['addresses', 'country'], ascending=[False, True], inplace=True)
    summary_df.reset_index(drop=True, inplace=True)

    return summary_df


def partition_to_df(store: SubnetStore, partition: str) -> pd.DataFrame:
    records = []
    for key, country in store.items(partition=partition):
        network, _, prefix_length = key.rpartition('/')
        records.append({'network': network, 'prefix_length': int(prefix_length), 'country': country})
    return pd.DataFrame.from_records(data=records, columns=['network', 'prefix_length', 'country'])


def write_csv(path: pathlib.Path, df: pd.DataFrame) -> None:
    df.to_csv(path_or_buf=path, index=False)
