import asyncio
import inspect
import logging
import time
from contextvars import ContextVar
from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any, Callable, Optional

from gate import CompletionToken, SpecTimeout
from models import Failure, FailureKind, RunReport, SpecResult, SpecState

# Seconds a spec (or one of its setup routines) may stay suspended
DEFAULT_TIMEOUT_INTERVAL = 5.0

_current_result: ContextVar[Optional[SpecResult]] = ContextVar("current_result", default=None)


def fail(message: str, kind: FailureKind = FailureKind.ASSERTION, context: Any = None) -> None:
    """Record a failure against the spec that is currently running."""
    result = _current_result.get()
    if result is None:
        raise RuntimeError(f"fail() called outside of a running spec: {message}")
    result.failures.append(Failure(kind, message, context))


class Expectation:
    def __init__(self, actual: Any, negated: bool = False):
        self.actual = actual
        self.negated = negated

    @property
    def not_(self) -> "Expectation":
        return Expectation(self.actual, not self.negated)

    def _check(self, passed: bool, description: str) -> None:
        if passed != self.negated:
            return
        fail(f"Expected {self.actual!r} {'not ' if self.negated else ''}{description}.")

    def to_be(self, expected: Any) -> None:
        same = self.actual is expected or (
            type(self.actual) is type(expected) and self.actual == expected
        )
        self._check(same, f"to be {expected!r}")

    def to_equal(self, expected: Any) -> None:
        self._check(self.actual == expected, f"to equal {expected!r}")

    def to_be_defined(self) -> None:
        self._check(self.actual is not None, "to be defined")

    def to_be_truthy(self) -> None:
        self._check(bool(self.actual), "to be truthy")

    def to_be_greater_than(self, expected: Any) -> None:
        self._check(self.actual > expected, f"to be greater than {expected!r}")

    def to_contain(self, expected: Any) -> None:
        self._check(expected in self.actual, f"to contain {expected!r}")


def expect(actual: Any) -> Expectation:
    return Expectation(actual)


@dataclass
class Spec:
    name: str
    body: Callable
    timeout: Optional[float] = None
    skip: bool = False


class Suite:
    def __init__(self, name: str):
        self.name = name
        self.specs: list[Spec] = []
        self.setups: list[Callable] = []
        self.teardowns: list[Callable] = []

    def it(self, name: str, timeout: Optional[float] = None, skip: bool = False):
        def decorator(fn: Callable) -> Callable:
            self.specs.append(Spec(name, fn, timeout, skip))
            return fn

        return decorator

    def before_each(self, fn: Callable) -> Callable:
        self.setups.append(fn)
        return fn

    def after_each(self, fn: Callable) -> Callable:
        self.teardowns.append(fn)
        return fn


class SuiteRunner:
    """Runs suites in declaration order on a single event loop.

    Routines ask for collaborators by parameter name: `done` receives a
    fresh CompletionToken the routine must eventually invoke, `ctx` receives
    a namespace shared by one spec's setup, body and teardown.
    """

    def __init__(self, default_timeout: float = DEFAULT_TIMEOUT_INTERVAL):
        self.default_timeout = default_timeout
        self.suites: list[Suite] = []
        self._active: Optional[SpecResult] = None
        self._pending: Optional[CompletionToken] = None

    def describe(self, name: str) -> Suite:
        suite = Suite(name)
        self.suites.append(suite)
        return suite

    def run_sync(self) -> RunReport:
        return asyncio.run(self.run())

    async def run(self) -> RunReport:
        report = RunReport()
        loop = asyncio.get_running_loop()
        previous_handler = loop.get_exception_handler()
        loop.set_exception_handler(self._on_uncaught)
        try:
            for suite in self.suites:
                logging.info(f"Running suite: {suite.name} ({len(suite.specs)} specs)")
                for spec in suite.specs:
                    result = await self._run_spec(suite, spec)
                    report.results.append(result)
                    _log_result(result)
        finally:
            loop.set_exception_handler(previous_handler)
        logging.info(
            f"{len(report.results)} specs, {report.failed} failures, {report.skipped} skipped"
        )
        return report

    async def _run_spec(self, suite: Suite, spec: Spec) -> SpecResult:
        result = SpecResult(suite=suite.name, name=spec.name)
        if spec.skip:
            result.state = SpecState.SKIPPED
            return result

        timeout = spec.timeout if spec.timeout is not None else self.default_timeout
        ctx = SimpleNamespace()
        reset_token = _current_result.set(result)
        self._active = result
        started = time.monotonic()
        try:
            ready = True
            for setup in suite.setups:
                if not await self._call(setup, ctx, result, timeout):
                    ready = False
                    break
            if ready:
                await self._call(spec.body, ctx, result, timeout)
            for teardown in suite.teardowns:
                await self._call(teardown, ctx, result, timeout)
        finally:
            _current_result.reset(reset_token)
            self._active = None
            result.duration = time.monotonic() - started

        if not ready:
            result.state = SpecState.FAILED
        elif result.state != SpecState.FAILED:
            result.state = SpecState.ASSERTED
        return result

    async def _call(self, fn: Callable, ctx: SimpleNamespace, result: SpecResult, timeout: float) -> bool:
        """Run one routine to completion. Returns False if it failed."""
        params = inspect.signature(fn).parameters
        kwargs: dict[str, Any] = {}
        done = None
        if "done" in params:
            done = CompletionToken(f"done callback of '{result.full_name}'")
            kwargs["done"] = done
        if "ctx" in params:
            kwargs["ctx"] = ctx

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        failures_before = len(result.failures)
        try:
            self._pending = done
            if done is not None or inspect.iscoroutinefunction(fn):
                result.state = SpecState.LOADING
            outcome = fn(**kwargs)
            if inspect.isawaitable(outcome):
                await asyncio.wait_for(outcome, timeout)
            if done is not None:
                await done.wait(max(deadline - loop.time(), 0), interval=timeout)
                if done.error is not None:
                    fail(f"Failed: {done.error}")
            if result.state == SpecState.LOADING:
                result.state = SpecState.COMPLETED
        except SpecTimeout as e:
            fail(str(e), kind=FailureKind.TIMEOUT)
            result.state = SpecState.FAILED
            return False
        except asyncio.TimeoutError:
            fail(
                f"Timeout - {fn.__name__} did not finish within {timeout:g} seconds",
                kind=FailureKind.TIMEOUT,
            )
            result.state = SpecState.FAILED
            return False
        except AssertionError as e:
            fail(str(e) or "Assertion failed")
            return False
        except Exception as e:
            logging.error(f"{result.full_name}: {fn.__name__} raised {type(e).__name__}: {e}")
            fail(f"{type(e).__name__}: {e}", kind=FailureKind.ERROR)
            result.state = SpecState.FAILED
            return False
        finally:
            self._pending = None
        return len(result.failures) == failures_before

    def _on_uncaught(self, loop: asyncio.AbstractEventLoop, context: dict) -> None:
        """Charge errors raised in loop callbacks to the running spec.

        A suspended routine waiting on its token is released so the spec
        fails with the error instead of timing out.
        """
        result = self._active
        if result is None:
            loop.default_exception_handler(context)
            return
        exc = context.get("exception")
        message = f"{type(exc).__name__}: {exc}" if exc is not None else context.get("message", "")
        logging.error(f"{result.full_name}: uncaught {message}")
        result.failures.append(Failure(FailureKind.ERROR, message))
        result.state = SpecState.FAILED
        if self._pending is not None and not self._pending.fired:
            self._pending()


def _log_result(result: SpecResult) -> None:
    if result.state == SpecState.SKIPPED:
        logging.info(f"SKIPPED {result.full_name}")
    elif result.passed:
        logging.info(f"PASSED {result.full_name} ({result.duration:.3f}s)")
    else:
        logging.error(f"FAILED {result.full_name}")
        for failure in result.failures:
            logging.error(f"  [{failure.kind.value}] {failure.message}")


def format_report(report: RunReport) -> str:
    lines = []
    for result in report.results:
        if result.state == SpecState.SKIPPED:
            status = "skipped"
        else:
            status = "ok" if result.passed else "FAILED"
        lines.append(f"{result.full_name} ... {status}")
        for failure in result.failures:
            line = f"    [{failure.kind.value}] {failure.message}"
            if failure.context is not None:
                line += f" ({failure.context!r})"
            lines.append(line)
    noun = "failure" if report.failed == 1 else "failures"
    lines.append(f"{len(report.results)} specs, {report.failed} {noun}, {report.skipped} skipped")
    return "\n".join(lines)
