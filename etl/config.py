from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from typing import Optional, Sequence

import pytz

from etl.records import ConfigError

OUTPUT_FORMATS = ("tsv", "parquet")


def _str_to_bool(v: Optional[str], default: bool = False) -> bool:
    if v is None:
        return default
    return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}


@dataclass(frozen=True)
class EtlConfig:
    input_path: str
    output_path: str
    timezone: str = "UTC"
    output_format: str = "tsv"
    write_success_marker: bool = False

    def __post_init__(self):
        if not self.input_path:
            raise ConfigError("input path is required (LOG_INPUT_PATH or --input-path)")
        if not self.output_path:
            raise ConfigError("output path is required (LOG_OUTPUT_PATH or --output-path)")
        if self.output_format not in OUTPUT_FORMATS:
            raise ConfigError(
                f"output format must be one of {OUTPUT_FORMATS}, got {self.output_format!r}"
            )
        try:
            pytz.timezone(self.timezone)
        except pytz.UnknownTimeZoneError:
            raise ConfigError(f"unknown timezone: {self.timezone!r}")

    @property
    def tz(self):
        return pytz.timezone(self.timezone)

    @staticmethod
    def from_env() -> "EtlConfig":
        return EtlConfig(**_env_values())


def _env_values() -> dict:
    return {
        "input_path": os.getenv("LOG_INPUT_PATH", "").strip(),
        "output_path": os.getenv("LOG_OUTPUT_PATH", "").strip(),
        "timezone": os.getenv("LOG_TIMEZONE", "UTC").strip(),
        "output_format": os.getenv("LOG_OUTPUT_FORMAT", "tsv").strip().lower(),
        "write_success_marker": _str_to_bool(os.getenv("LOG_SUCCESS_MARKER")),
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Split an Apache access log into one tab-delimited file per day of month."
    )
    parser.add_argument("--input-path", help="Access log to read (.gz is decompressed).")
    parser.add_argument("--output-path", help="Directory to (re)create with the partitions.")
    parser.add_argument("--timezone", help="Timezone used to pick the day (default: UTC).")
    parser.add_argument("--output-format", choices=OUTPUT_FORMATS)
    parser.add_argument(
        "--success-marker",
        action="store_true",
        default=None,
        help="Write an empty _SUCCESS file once the run completes.",
    )
    parser.add_argument("--log-level", default="INFO")
    return parser


def load_config(argv: Optional[Sequence[str]] = None) -> tuple[EtlConfig, argparse.Namespace]:
    """Environment first, then any CLI flag that was given overrides it."""
    args = build_parser().parse_args(argv)
    env = _env_values()
    overrides = {
        "input_path": args.input_path,
        "output_path": args.output_path,
        "timezone": args.timezone,
        "output_format": args.output_format,
        "write_success_marker": args.success_marker,
    }
    env.update({k: v for k, v in overrides.items() if v is not None})
    return EtlConfig(**env), args
