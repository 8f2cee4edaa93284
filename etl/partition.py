import logging
import os
import shutil
from typing import List, Optional, Sequence, Tuple

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from etl.records import (
    DAY_COLUMNS,
    TRAP_COLUMNS,
    ConfigError,
    DayRecord,
    RunStats,
    TrapRecord,
)

log = logging.getLogger(__name__)

TRAP_FILENAME = "trap"
SUCCESS_MARKER = "_SUCCESS"
STAGING_SUFFIX = ".staging"


def records_to_df(rows: Sequence[DayRecord]) -> pd.DataFrame:
    # DayRecord field names, in declaration order
    columns = list(DayRecord.__annotations__.keys())
    if not rows:
        return pd.DataFrame(columns=columns)
    df = pd.DataFrame([r.to_dict() for r in rows], columns=columns)
    for col in ("day", "time", "response"):
        df[col] = df[col].astype("int64")
    return df


def group_by_day(rows: Sequence[DayRecord]) -> List[Tuple[int, pd.DataFrame]]:
    """
    Group records by day of month, ascending; each group keeps input order.

    The key is the day number only, so 01/Aug and 01/Sep share partition 1.
    """
    df = records_to_df(rows)
    if df.empty:
        return []
    return [(int(day), part) for day, part in df.groupby("day", sort=True)]


def partition_filename(day: int, output_format: str = "tsv") -> str:
    name = f"{day:02d}"
    return name + ".parquet" if output_format == "parquet" else name


def _write_tsv(df: pd.DataFrame, file_path: str, columns: List[str]) -> None:
    # Fields go out raw, no quoting, so a reader can split each row on tabs
    with open(file_path, "w", encoding="utf-8", newline="\n") as f:
        f.write("\t".join(columns) + "\n")
        for row in df[columns].itertuples(index=False, name=None):
            f.write("\t".join(str(v) for v in row) + "\n")


def write_partitions(
    rows: Sequence[DayRecord],
    out_dir: str,
    output_format: str = "tsv",
) -> List[str]:
    written = []
    for day, part in group_by_day(rows):
        file_path = os.path.join(out_dir, partition_filename(day, output_format))
        if output_format == "parquet":
            table = pa.Table.from_pandas(part[DAY_COLUMNS], preserve_index=False)
            pq.write_table(table, file_path)
        else:
            _write_tsv(part, file_path, DAY_COLUMNS)
        log.info("Wrote %d rows -> %s", len(part), file_path)
        written.append(file_path)
    return written


def write_trap(trap: Sequence[TrapRecord], out_dir: str) -> str:
    """Always written, header only when nothing was trapped."""
    df = pd.DataFrame([t.to_dict() for t in trap], columns=TRAP_COLUMNS)
    file_path = os.path.join(out_dir, TRAP_FILENAME)
    _write_tsv(df, file_path, TRAP_COLUMNS)
    if trap:
        log.info("Trapped %d rows -> %s", len(trap), file_path)
    return file_path


def _remove(path: str) -> None:
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    elif os.path.lexists(path):
        os.remove(path)


def _is_within(path: str, parent: str) -> bool:
    return path == parent or path.startswith(parent.rstrip(os.sep) + os.sep)


def check_output_path(output_path: str, input_path: Optional[str] = None) -> str:
    """
    Resolve `output_path` and refuse targets whose replacement would wipe
    the filesystem root, the working directory or the input log.
    """
    resolved = os.path.realpath(output_path)
    if resolved == os.path.dirname(resolved):
        raise ConfigError(f"refusing to replace filesystem root: {output_path!r}")
    if _is_within(os.path.realpath(os.getcwd()), resolved):
        raise ConfigError(f"output path contains the working directory: {output_path!r}")
    if input_path and _is_within(os.path.realpath(input_path), resolved):
        raise ConfigError(f"output path contains the input log: {output_path!r}")
    return resolved


def write_output(
    rows: Sequence[DayRecord],
    trap: Sequence[TrapRecord],
    output_path: str,
    output_format: str = "tsv",
    write_success_marker: bool = False,
    stats: Optional[RunStats] = None,
    input_path: Optional[str] = None,
) -> List[str]:
    """
    Replace `output_path` with one file per day plus the trap file.

    Everything is written to `<output_path>.staging` first and moved into
    place at the end; a failed write leaves the previous output untouched.
    """
    output_path = check_output_path(output_path, input_path)
    staging = output_path + STAGING_SUFFIX
    _remove(staging)
    os.makedirs(staging)

    try:
        files = write_partitions(rows, staging, output_format=output_format)
        write_trap(trap, staging)
        if write_success_marker:
            open(os.path.join(staging, SUCCESS_MARKER), "wb").close()
    except Exception:
        log.error("Writing partitions to %s failed", staging, exc_info=True)
        shutil.rmtree(staging, ignore_errors=True)
        raise

    _remove(output_path)
    os.replace(staging, output_path)

    if stats is not None:
        stats.written += len(rows)
        stats.partitions += len(files)
    return [os.path.join(output_path, os.path.basename(f)) for f in files]
