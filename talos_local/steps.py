"""Dependency-ordered step execution with best-effort reverse teardown."""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field

from talos_local.exceptions import (
    CommandError,
    StepDefinitionError,
    StepFailedError,
    TalosLocalError,
)
from talos_local.logging_config import get_logger
from talos_local.models.results import StepResult
from talos_local.shell import CommandResult, CommandRunner

logger = get_logger(__name__)


@dataclass(frozen=True)
class StepContext:
    """What a step action gets to work with: its name, a runner and its environment."""

    name: str
    runner: CommandRunner
    environment: Mapping[str, str] = field(default_factory=dict)

    def run(
        self, args: Sequence[str], input: str | None = None, timeout: float | None = None
    ) -> CommandResult:
        """Run a command with this step's environment overlaid."""
        return self.runner.run(args, env=dict(self.environment), input=input, timeout=timeout)


StepAction = Callable[[StepContext], StepResult]
DeleteAction = Callable[[StepContext], None]


@dataclass
class Step:
    """One named provisioning step.

    Attributes:
        name: Unique step name
        create: Action run on `up`; must be idempotent
        delete: Optional inverse action run on `destroy`
        environment: Variables overlaid on the process environment for both actions
        depends_on: Names of steps that must have succeeded first
    """

    name: str
    create: StepAction
    delete: DeleteAction | None = None
    environment: dict[str, str] = field(default_factory=dict)
    depends_on: list[str] = field(default_factory=list)


class Pipeline:
    """Ordered set of steps with fail-fast creation and best-effort teardown."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner
        self.steps: list[Step] = []
        self.results: list[StepResult] = []

    def add(self, step: Step) -> Step:
        """Declare a step.

        Dependencies must already be declared, so declaration order is always
        a valid execution order.

        Raises:
            StepDefinitionError: On a duplicate name or unknown dependency.
        """
        known = {s.name for s in self.steps}
        if step.name in known:
            raise StepDefinitionError(f"Duplicate step name: '{step.name}'")
        missing = [d for d in step.depends_on if d not in known]
        if missing:
            raise StepDefinitionError(
                f"Step '{step.name}' depends on undeclared steps: {', '.join(missing)}",
                "Declare dependencies before the steps that use them",
            )
        self.steps.append(step)
        return step

    def get(self, name: str) -> Step:
        for step in self.steps:
            if step.name == name:
                return step
        raise KeyError(name)

    def plan(self) -> list[dict]:
        """Describe the steps in execution order."""
        return [
            {
                "name": step.name,
                "depends_on": list(step.depends_on),
                "has_delete": step.delete is not None,
                "environment": sorted(step.environment),
            }
            for step in self.steps
        ]

    def _context(self, step: Step) -> StepContext:
        return StepContext(name=step.name, runner=self.runner, environment=dict(step.environment))

    def up(self) -> list[StepResult]:
        """
        Run every create-action in order.

        Raises:
            StepFailedError: On the first failing step; later steps never run.
        """
        self.results = []

        for step in self.steps:
            logger.info(f"Running step '{step.name}'")
            try:
                result = step.create(self._context(step))
            except (TalosLocalError, OSError) as e:
                if isinstance(e, TalosLocalError):
                    message, details = e.message, e.details
                else:
                    message, details = str(e), None
                output = e.result if isinstance(e, CommandError) else None
                result = StepResult.failed(step.name, message, output)
                self.results.append(result)
                logger.error(f"Step '{step.name}' failed: {message}")
                raise StepFailedError(step.name, result, details)

            self.results.append(result)
            if not result.succeeded:
                logger.error(f"Step '{step.name}' failed: {result.message}")
                raise StepFailedError(step.name, result, result.stderr.strip() or None)

            logger.info(f"Step '{step.name}' {result.status.value}")

        return self.results

    def destroy(self) -> list[StepResult]:
        """
        Run every delete-action in reverse order.

        Failures are logged and recorded, never raised, so the remaining
        cleanup still happens.
        """
        self.results = []
        for step in reversed(self.steps):
            if step.delete is None:
                continue
            logger.info(f"Tearing down step '{step.name}'")
            try:
                step.delete(self._context(step))
            except (TalosLocalError, OSError) as e:
                message = e.message if isinstance(e, TalosLocalError) else str(e)
                logger.warning(f"Teardown of '{step.name}' failed, continuing: {message}")
                self.results.append(StepResult.failed(step.name, message))
                continue
            self.results.append(StepResult.ok(step.name, "deleted"))
        return self.results
