from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

import polars as pl

from .base import _ensure_polars_df

logger = logging.getLogger(__name__)

_SUFFIX_FORMATS = {
    ".csv": "csv",
    ".txt": "csv",
    ".parquet": "parquet",
    ".pq": "parquet",
    ".ipc": "ipc",
    ".arrow": "ipc",
    ".feather": "ipc",
    ".ndjson": "ndjson",
    ".jsonl": "ndjson",
}


def _resolve_format(path: Path, format: Optional[str]) -> str:
    if format is not None:
        fmt = format.lower()
        if fmt not in set(_SUFFIX_FORMATS.values()):
            raise ValueError(f"Unsupported table format: {format}")
        return fmt
    fmt = _SUFFIX_FORMATS.get(path.suffix.lower())
    if fmt is None:
        raise ValueError(f"Cannot infer table format from suffix '{path.suffix}'")
    return fmt


def load_table(path: Union[str, Path], format: Optional[str] = None, **read_kwargs) -> pl.DataFrame:
    """Read a rectangular dataset into a Polars DataFrame.

    The format is taken from ``format`` or inferred from the file suffix.
    CSV files treat empty strings and ``NA`` as missing unless ``null_values``
    is passed explicitly.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Dataset not found: {path}")
    fmt = _resolve_format(path, format)
    if fmt == "csv":
        read_kwargs.setdefault("null_values", ["", "NA"])
        read_kwargs.setdefault("infer_schema_length", 10000)
        df = pl.read_csv(path, **read_kwargs)
    elif fmt == "parquet":
        df = pl.read_parquet(path, **read_kwargs)
    elif fmt == "ipc":
        df = pl.read_ipc(path, **read_kwargs)
    else:
        df = pl.read_ndjson(path, **read_kwargs)
    logger.info("Loaded %s: %d rows x %d columns", path.name, df.height, df.width)
    return df


def write_table(df: pl.DataFrame, path: Union[str, Path], format: Optional[str] = None) -> Path:
    df = _ensure_polars_df(df)
    path = Path(path)
    fmt = _resolve_format(path, format)
    path.parent.mkdir(parents=True, exist_ok=True)
    if fmt == "csv":
        df.write_csv(path)
    elif fmt == "parquet":
        df.write_parquet(path)
    elif fmt == "ipc":
        df.write_ipc(path)
    else:
        df.write_ndjson(path)
    return path
