from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


@dataclass
class FeedSource:
    name: str
    url: str


@dataclass
class Entry:
    title: str
    link: str
    snippet: str = ""


class FailureKind(str, Enum):
    ASSERTION = "assertion"
    TIMEOUT = "timeout"
    VALIDATION = "validation"
    ERROR = "error"


class SpecState(str, Enum):
    PENDING = "pending"
    LOADING = "loading"
    COMPLETED = "completed"
    ASSERTED = "asserted"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class Failure:
    kind: FailureKind
    message: str
    context: Optional[Any] = None


@dataclass
class SpecResult:
    suite: str
    name: str
    state: SpecState = SpecState.PENDING
    failures: list[Failure] = field(default_factory=list)
    duration: float = 0.0

    @property
    def full_name(self) -> str:
        return f"{self.suite} {self.name}"

    @property
    def passed(self) -> bool:
        return self.state == SpecState.ASSERTED and not self.failures


@dataclass
class RunReport:
    results: list[SpecResult] = field(default_factory=list)

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.passed)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.state == SpecState.SKIPPED)

    @property
    def failed(self) -> int:
        return len(self.results) - self.passed - self.skipped

    @property
    def exit_code(self) -> int:
        return 0 if self.failed == 0 else 1
