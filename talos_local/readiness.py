"""Bounded readiness polling for the container runtime and cluster nodes."""

import time
from collections.abc import Callable

from talos_local.exceptions import CommandError
from talos_local.logging_config import get_logger
from talos_local.models.results import ReadinessResult
from talos_local.shell import CommandRunner

logger = get_logger(__name__)

# A probe returns (ready, detail) where detail is a short progress note
Probe = Callable[[], tuple[bool, str]]


def poll_until(
    probe: Probe,
    attempts: int,
    interval: float,
    sleep: Callable[[float], None] = time.sleep,
    describe: str = "condition",
) -> ReadinessResult:
    """
    Call ``probe`` until it reports ready or ``attempts`` calls have been made.

    The wait never raises on exhaustion; it returns a result with
    ``ready=False`` and leaves the decision to the caller. A probe whose
    command fails counts as not ready.
    """
    detail = ""
    for attempt in range(1, attempts + 1):
        try:
            ready, detail = probe()
        except CommandError as e:
            ready, detail = False, e.message

        if ready:
            logger.info(f"{describe} ready after {attempt} attempt(s): {detail}")
            return ReadinessResult(ready=True, attempts=attempt, detail=detail)

        logger.debug(f"Waiting for {describe} ({attempt}/{attempts}): {detail}")
        if attempt < attempts:
            sleep(interval)

    logger.warning(f"Gave up waiting for {describe} after {attempts} attempts: {detail}")
    return ReadinessResult(ready=False, attempts=attempts, detail=detail)


def count_ready_nodes(output: str) -> tuple[int, int]:
    """Count Ready nodes in ``kubectl get nodes --no-headers`` output.

    Returns:
        (ready, total)
    """
    ready = 0
    total = 0
    for line in output.splitlines():
        columns = line.split()
        if not columns:
            continue
        total += 1
        if len(columns) > 1 and columns[1] == "Ready":
            ready += 1
    return ready, total


def wait_for_docker(
    runner: CommandRunner,
    docker_bin: str,
    env: dict[str, str],
    attempts: int = 30,
    interval: float = 5.0,
    sleep: Callable[[float], None] = time.sleep,
) -> ReadinessResult:
    """Wait until ``docker info`` succeeds against the given DOCKER_HOST."""

    def probe() -> tuple[bool, str]:
        result = runner.run([docker_bin, "info", "--format", "{{.ServerVersion}}"], env=env)
        if result.ok:
            return True, f"server version {result.stdout.strip()}"
        return False, result.error_text() or "docker daemon not reachable"

    return poll_until(probe, attempts, interval, sleep=sleep, describe="Docker")


def wait_for_nodes(
    runner: CommandRunner,
    kubectl_bin: str,
    env: dict[str, str],
    attempts: int = 60,
    interval: float = 5.0,
    sleep: Callable[[float], None] = time.sleep,
) -> ReadinessResult:
    """Wait until every node reports Ready and at least one node exists."""

    def probe() -> tuple[bool, str]:
        result = runner.run([kubectl_bin, "get", "nodes", "--no-headers"], env=env)
        ready, total = count_ready_nodes(result.stdout) if result.ok else (0, 0)
        return (total > 0 and ready == total), f"{ready}/{total} ready"

    return poll_until(probe, attempts, interval, sleep=sleep, describe="Kubernetes nodes")
