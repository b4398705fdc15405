from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Sequence

import duckdb

from .normalize import DisplayRide


def write_json(path: Path, payload: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, ensure_ascii=False)
        handle.write("\n")


def write_rides(path: Path, rides: Sequence[DisplayRide]) -> None:
    write_json(path, [asdict(ride) for ride in rides])


def export_parquet(json_path: Path, parquet_path: Path | None = None) -> Path:
    """Copy the rides JSON array into a Parquet file next to it."""
    parquet_path = parquet_path or json_path.with_suffix(".parquet")
    con = duckdb.connect()
    try:
        con.execute(
            "CREATE OR REPLACE TABLE rides AS SELECT * FROM read_json_auto(?, format = 'array')",
            [str(json_path)],
        )
        con.execute("COPY rides TO ? (FORMAT 'parquet')", [str(parquet_path)])
    finally:
        con.close()
    return parquet_path
