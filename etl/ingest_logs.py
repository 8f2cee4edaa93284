import gzip
import logging
import os
import re
from datetime import datetime, timedelta, timezone
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from etl.config import EtlConfig, load_config
from etl.partition import write_output
from etl.records import (
    DateParseError,
    DayRecord,
    NormalizedRecord,
    ParsedRecord,
    ParseError,
    RunStats,
    TrapRecord,
    Verdict,
)

log = logging.getLogger(__name__)

# Apache common/combined format; trailing referer/agent are matched by .* and ignored
LOG_PATTERN = re.compile(
    r'^([^ ]*) \S+ \S+ \[([\w:/]+\s[+\-]\d{4})\] "(.+?)" (\d{3}) ([^ ]*).*$'
)

# dd/MMM/yyyy:HH:mm:ss Z, e.g. 01/Aug/1995:00:00:01 -0400
TIME_PATTERN = re.compile(
    r"^(\d{2})/([A-Za-z]{3})/(\d{4}):(\d{2}):(\d{2}):(\d{2}) ([+\-])(\d{2})(\d{2})$"
)
# Fixed English abbreviations so the process locale never matters
MONTHS = {
    name: i
    for i, name in enumerate(
        ["jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"],
        start=1,
    )
}
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def read_lines(path: str) -> Iterator[str]:
    if not os.path.exists(path):
        raise FileNotFoundError(f"Log file not found: {path}")
    opener = gzip.open if path.endswith(".gz") else open
    with opener(path, "rt", encoding="utf-8", errors="replace") as f:
        for line in f:
            yield line.rstrip("\r\n")


def parse_line(line: str) -> ParsedRecord:
    m = LOG_PATTERN.match(line)
    if not m:
        raise ParseError(line)
    ip, time_text, request, response, size = m.groups()
    return ParsedRecord(
        ip=ip,
        time=time_text,
        request=request,
        response=int(response),
        size=size,
    )


def validate(record: ParsedRecord) -> Verdict:
    """response != 404; anything that isn't a number can't be checked and is trapped."""
    try:
        response = int(record.response)
    except (TypeError, ValueError):
        return Verdict.TRAP
    return Verdict.VALID if response != 404 else Verdict.TRAP


def parse_time(text: str) -> int:
    """
    Parse an access log timestamp into epoch milliseconds.

    The offset is applied as written; e.g. "01/Aug/1995:00:00:01 -0400"
    is 1995-08-01T04:00:01Z.
    """
    m = TIME_PATTERN.match(text or "")
    if not m:
        raise DateParseError(text)
    day, mon, year, hh, mm, ss, sign, off_h, off_m = m.groups()
    month = MONTHS.get(mon.lower())
    if month is None:
        raise DateParseError(text)
    offset = timedelta(hours=int(off_h), minutes=int(off_m))
    if sign == "-":
        offset = -offset
    try:
        dt = datetime(
            int(year), month, int(day), int(hh), int(mm), int(ss),
            tzinfo=timezone(offset),
        )
    except ValueError:
        # 31/Feb, 25:00:00 and friends
        raise DateParseError(text)
    return (dt - EPOCH) // timedelta(milliseconds=1)


def normalize(record: ParsedRecord) -> NormalizedRecord:
    return NormalizedRecord(
        ip=record.ip,
        time=parse_time(record.time),
        request=record.request,
        response=record.response,
        size=record.size,
    )


def day_of_month(epoch_ms: int, tz=timezone.utc) -> int:
    return (EPOCH + timedelta(milliseconds=epoch_ms)).astimezone(tz).day


def with_day(record: NormalizedRecord, tz=timezone.utc) -> DayRecord:
    return DayRecord(
        day=day_of_month(record.time, tz),
        ip=record.ip,
        time=record.time,
        request=record.request,
        response=record.response,
        size=record.size,
    )


def transform(
    lines: Iterable[str],
    tz=timezone.utc,
    stats: Optional[RunStats] = None,
) -> Tuple[List[DayRecord], List[TrapRecord]]:
    """Parse → validate → normalize → add day. Returns (main path, trap)."""
    stats = stats if stats is not None else RunStats()
    rows: List[DayRecord] = []
    trap: List[TrapRecord] = []

    for line in lines:
        stats.lines += 1
        try:
            rec = parse_line(line)
        except ParseError as e:
            stats.parse_errors += 1
            log.debug("Skip line %d: %s", stats.lines, e)
            continue
        stats.parsed += 1

        if validate(rec) is Verdict.TRAP:
            stats.trapped += 1
            trap.append(TrapRecord(rec, reason="validation"))
            continue

        try:
            norm = normalize(rec)
        except DateParseError as e:
            stats.trapped += 1
            stats.date_errors += 1
            log.warning("Trap line %d: %s", stats.lines, e)
            trap.append(TrapRecord(rec, reason="date"))
            continue

        rows.append(with_day(norm, tz))

    return rows, trap


def extract(config: EtlConfig, stats: RunStats) -> Tuple[List[DayRecord], List[TrapRecord]]:
    rows, trap = transform(read_lines(config.input_path), config.tz, stats)
    if not rows:
        log.warning("No valid rows parsed from %s. Check log format.", config.input_path)
    return rows, trap


def load(
    rows: List[DayRecord],
    trap: List[TrapRecord],
    config: EtlConfig,
    stats: RunStats,
) -> List[str]:
    return write_output(
        rows,
        trap,
        config.output_path,
        output_format=config.output_format,
        write_success_marker=config.write_success_marker,
        stats=stats,
        input_path=config.input_path,
    )


def summary(stats: RunStats) -> str:
    return (
        f"Finished: lines={stats.lines} parsed={stats.parsed} "
        f"parse_errors={stats.parse_errors} trapped={stats.trapped} "
        f"(date_errors={stats.date_errors}) written={stats.written} "
        f"partitions={stats.partitions}"
    )


def run(config: EtlConfig) -> RunStats:
    stats = RunStats()
    rows, trap = extract(config, stats)
    load(rows, trap, config, stats)
    log.info(summary(stats))
    return stats


def main(argv: Optional[Sequence[str]] = None) -> None:
    config, args = load_config(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    run(config)


if __name__ == "__main__":
    main()
