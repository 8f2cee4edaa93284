from dataclasses import dataclass, asdict
from enum import Enum, auto
from typing import Any, Dict


# Column order of the day partitions and of the trap file
DAY_COLUMNS = ["day", "ip", "time", "request", "size"]
TRAP_COLUMNS = ["ip", "time", "request", "response", "size"]


class EtlError(Exception):
    """Base class for everything this pipeline raises on purpose."""


class ParseError(EtlError):
    def __init__(self, line: str):
        super().__init__(f"line does not match access log format: {line!r}")
        self.line = line


class DateParseError(EtlError):
    def __init__(self, value: str):
        super().__init__(f"unparseable timestamp: {value!r}")
        self.value = value


class ConfigError(EtlError):
    pass


class Verdict(Enum):
    """Outcome of record validation. TRAP records leave the main path."""
    VALID = auto()
    TRAP = auto()


@dataclass(frozen=True)
class ParsedRecord:
    """
    One access log line split into its five regex groups.

    `time` is still the raw text, e.g. "01/Aug/1995:00:00:01 -0400".
    """
    ip: str
    time: str
    request: str
    response: int
    size: str


@dataclass(frozen=True)
class NormalizedRecord:
    ip: str
    time: int  # epoch milliseconds
    request: str
    response: int
    size: str


@dataclass(frozen=True)
class DayRecord:
    day: int
    ip: str
    time: int
    request: str
    response: int
    size: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TrapRecord:
    record: ParsedRecord
    reason: str  # "validation" or "date"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self.record)


@dataclass
class RunStats:
    lines: int = 0
    parsed: int = 0
    parse_errors: int = 0
    trapped: int = 0
    date_errors: int = 0
    written: int = 0
    partitions: int = 0
