import os
from typing import List, Optional, Tuple

from prefect import flow, task

from etl.config import EtlConfig
from etl.ingest_logs import extract, load, summary
from etl.records import DayRecord, RunStats, TrapRecord


@task
def extract_transform(config: EtlConfig) -> Tuple[List[DayRecord], List[TrapRecord], RunStats]:
    print(f"[flow] ETL start: {config.input_path}")
    stats = RunStats()
    rows, trap = extract(config, stats)
    print(f"[flow] parsed={stats.parsed} skipped={stats.parse_errors} trapped={stats.trapped}")
    return rows, trap, stats


@task
def write_day_partitions(
    rows: List[DayRecord],
    trap: List[TrapRecord],
    config: EtlConfig,
    stats: RunStats,
) -> RunStats:
    load(rows, trap, config, stats)
    print(f"[flow] wrote {stats.written} rows in {stats.partitions} partitions -> {config.output_path}")
    return stats


@flow(log_prints=True)
def access_log_day_partition_flow(
    input_path: Optional[str] = None,
    output_path: Optional[str] = None,
    timezone: str = "UTC",
    output_format: str = "tsv",
    write_success_marker: bool = False,
) -> RunStats:
    # Unset paths fall back to LOG_INPUT_PATH / LOG_OUTPUT_PATH
    config = EtlConfig(
        input_path=input_path or os.getenv("LOG_INPUT_PATH", ""),
        output_path=output_path or os.getenv("LOG_OUTPUT_PATH", ""),
        timezone=timezone,
        output_format=output_format,
        write_success_marker=write_success_marker,
    )
    rows, trap, stats = extract_transform(config)
    stats = write_day_partitions(rows, trap, config, stats)
    print(f"[flow] {summary(stats)}")
    return stats


if __name__ == "__main__":
    access_log_day_partition_flow()
