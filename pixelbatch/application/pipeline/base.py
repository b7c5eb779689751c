from __future__ import annotations

from dataclasses import dataclass, field
from typing import (
    Any,
    Dict,
    List,
    Optional,
    Protocol,
    runtime_checkable,
    Mapping,
    ClassVar,
)
import logging
from abc import ABC, abstractmethod
from time import perf_counter
from enum import Enum

from pixelbatch.core.exceptions import ImageProcessingError, PipelineError


@dataclass(slots=True)
class PipelineContext:
    """Working state of one image's pass through the pipeline.

    - input: immutable-like per-image payload (source bytes, options, batch info)
    - artifacts: pixel buffers and outputs handed from step to step; the
      whole context is dropped when the image is done
    """

    # Reserved artifact keys (not dataclass fields)
    RUN_ID_KEY: ClassVar[str] = "_run_id"

    input: Mapping[str, Any]
    artifacts: Dict[str, Any] = field(default_factory=dict)

    # ----- Artifacts: primary cross-step data store -----
    def set(self, key: str, value: Any) -> None:
        self.artifacts[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self.artifacts.get(key, default)

    def has(self, key: str) -> bool:
        return key in self.artifacts

    def remove(self, key: str) -> None:
        if key in self.artifacts:
            del self.artifacts[key]

    # ----- Run ID (the source image id) -----
    def get_run_id(self) -> Optional[str]:
        return self.get(self.RUN_ID_KEY, None)

    def set_run_id(self, run_id: str) -> None:
        self.set(self.RUN_ID_KEY, run_id)

    def ensure_run_id(self) -> str:
        rid = self.get_run_id()
        if not rid:
            rid = str(self.input.get("image_id") or "")
        if not rid:
            import uuid as _uuid

            rid = str(_uuid.uuid4())
        self.set_run_id(rid)
        return rid


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


@runtime_checkable
class Step(Protocol):
    async def __call__(
        self, context: PipelineContext
    ) -> None:  # pragma: no cover - protocol
        ...


logger = logging.getLogger(__name__)


class BaseStep(ABC):
    """Base class for pipeline steps with lifecycle hooks and status.

    Steps never retry: a failing image is dropped and retrying is left to
    whoever submitted the batch.
    """

    name: str = "base_step"

    required_keys: List[str] = []

    # runtime fields
    status: StepStatus = StepStatus.PENDING
    last_error: Optional[Exception] = None
    duration: float = 0.0

    async def __call__(self, context: PipelineContext) -> None:
        self.last_error = None

        if not self.validate_inputs(context):
            missing = [k for k in self.required_keys if not context.has(k)]
            raise KeyError(
                f"Missing required inputs for step '{self.name}': {', '.join(missing)}"
            )

        if self.can_skip(context):
            self.status = StepStatus.SKIPPED
            self.on_skip(context)
            return

        self.status = StepStatus.RUNNING
        self.on_start(context)
        start = perf_counter()
        try:
            await self.run(context)
            self.status = StepStatus.COMPLETED
        except Exception as e:  # noqa: BLE001
            self.last_error = e
            self.status = StepStatus.FAILED
            raise
        finally:
            self.duration = perf_counter() - start
            self.on_finish(context, self.duration)

    @abstractmethod
    async def run(
        self, context: PipelineContext
    ) -> None:  # pragma: no cover - abstract
        ...

    # Hooks
    def on_start(self, context: PipelineContext) -> None:
        logger.debug("Step %s start", getattr(self, "name", self.__class__.__name__))

    def on_finish(self, context: PipelineContext, duration: float) -> None:
        logger.debug(
            "Step %s finished in %.3fs with status=%s image_id=%s",
            getattr(self, "name", self.__class__.__name__),
            duration,
            self.status.value,
            context.get_run_id(),
        )

    def on_skip(self, context: PipelineContext) -> None:
        logger.debug("Step %s skipped", getattr(self, "name", self.__class__.__name__))

    # Utilities
    def validate_inputs(self, context: PipelineContext) -> bool:
        if not self.required_keys:
            return True
        return all(context.has(k) for k in self.required_keys)

    def can_skip(self, context: PipelineContext) -> bool:
        return False


class Middleware(Protocol):  # pragma: no cover - optional extension point
    def __call__(self, step: Step) -> Step: ...


class Pipeline:
    """Ordered steps for one image; the first failing step ends the run.

    Middlewares wrap every step once, in the order given.
    """

    def __init__(self, steps: List[Step], *, middlewares: Optional[List[Middleware]] = None):
        wrapped = []
        for step in steps:
            for mw in middlewares or []:
                step = mw(step)
            wrapped.append(step)
        self._steps = wrapped

    @property
    def steps(self) -> List[Step]:
        return list(self._steps)

    async def execute(self, context: PipelineContext) -> None:
        rid = context.ensure_run_id()
        start = perf_counter()

        for step in self._steps:
            step_name = getattr(step, "name", step.__class__.__name__)
            try:
                await step(context)  # use __call__ lifecycle
            except ImageProcessingError:
                raise
            except Exception as e:  # noqa: BLE001
                raise PipelineError(
                    f"Step '{step_name}' failed: {type(e).__name__}: {e}",
                    stage_name=step_name,
                ) from e

        logger.debug("[image_id=%s] Pipeline done in %.3fs", rid, perf_counter() - start)


def make_logging_middleware(
    logger_obj: logging.Logger | None = None,
    level_before: int = logging.DEBUG,
    level_after: int = logging.DEBUG,
) -> Middleware:
    """Return a middleware that logs before and after each step execution.

    Logs include: step name, image id, status, duration.
    """
    _log = logger_obj or logger

    def _middleware(step: Step) -> Step:
        class _Wrapped:
            # keep common attributes for downstream access
            def __init__(self, inner: Step):
                self._inner = inner

            def __getattr__(self, item):  # delegate attributes like 'name'
                return getattr(self._inner, item)

            async def __call__(self, context: PipelineContext) -> None:
                step_name = getattr(self._inner, "name", self._inner.__class__.__name__)
                rid = context.get_run_id()
                _log.log(level_before, "[image_id=%s] Step %s BEGIN", rid, step_name)
                _start = perf_counter()
                try:
                    await self._inner(context)
                finally:
                    duration = perf_counter() - _start
                    status = getattr(self._inner, "status", StepStatus.PENDING)
                    _log.log(
                        level_after,
                        "[image_id=%s] Step %s END status=%s duration=%.3fs",
                        rid,
                        step_name,
                        getattr(status, "value", str(status)),
                        duration,
                    )

        return _Wrapped(step)

    return _middleware
