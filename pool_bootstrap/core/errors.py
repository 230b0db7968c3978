"""Failure taxonomy for a bootstrap run.

Each step of the run raises exactly one family of errors. The orchestrator
wraps whatever reaches it into ``BootstrapFailed`` so callers see the failing
step and the original cause together.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pool_bootstrap.bootstrap.types import RunReport


class BootstrapError(RuntimeError):
    pass


class IssuanceFailure(BootstrapError):
    pass


class PoolInitializationError(BootstrapError):
    pass


class AlreadyInitialized(PoolInitializationError):
    def __init__(self, pool_id: str | None = None, message: str | None = None):
        self.pool_id = pool_id
        super().__init__(message or f"Pool already initialized: {pool_id}")


class InvalidPriceOrIdentity(PoolInitializationError):
    pass


class AllowanceFailure(BootstrapError):
    pass


class LiquidityDerivationFailure(BootstrapError):
    pass


class LiquiditySubmissionError(BootstrapError):
    pass


class SlippageExceeded(LiquiditySubmissionError):
    def __init__(
        self,
        maximum: int | None = None,
        required: int | None = None,
        message: str | None = None,
    ):
        self.maximum = maximum
        self.required = required
        super().__init__(
            message or f"Required amount {required} exceeds maximum {maximum}"
        )


class DeadlineExpired(LiquiditySubmissionError):
    def __init__(self, deadline: int | None = None, message: str | None = None):
        self.deadline = deadline
        super().__init__(message or f"Deadline passed: {deadline}")


class AtomicSubmissionFailure(LiquiditySubmissionError):
    pass


class BootstrapFailed(BootstrapError):
    def __init__(
        self,
        step: Any,
        cause: BaseException,
        report: RunReport | None = None,
    ):
        self.step = step
        self.cause = cause
        self.report = report
        step_name = getattr(step, "name", str(step))
        super().__init__(
            f"Bootstrap failed at {step_name}: {type(cause).__name__}: {cause}"
        )
