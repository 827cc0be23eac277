"""Sequential version bisection driven through the runner bridge."""

from __future__ import annotations

import logging as py_logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from fiddlectl.runner.models import OutputObserver, RunnerBridge, RunResult
from fiddlectl.versions.catalog import VersionCatalog
from fiddlectl.versions.models import Version

logger = py_logging.getLogger(__name__)


@dataclass
class BisectResult:
    good_version: Version | None = None
    bad_version: Version | None = None
    steps: list[tuple[Version, RunResult]] = field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return self.good_version is not None and self.bad_version is not None


def midpoint(low: int, high: int) -> int:
    return (low + high) // 2


async def bisect_versions(
    versions: Sequence[Version],
    runner: RunnerBridge,
    fiddle: Mapping[str, str],
    *,
    on_output: OutputObserver | None = None,
) -> BisectResult:
    """Binary-search ``versions`` (first assumed good, last assumed bad) one run at a time."""
    result = BisectResult()
    if len(versions) < 2:
        logger.warning("Nothing to bisect between %s versions", len(versions))
        return result

    low, high = 0, len(versions) - 1
    while high - low > 1:
        index = midpoint(low, high)
        version = versions[index]
        logger.info("Bisect step %s: testing %s (range %s..%s)", len(result.steps) + 1, version, versions[low], versions[high])
        outcome = await runner.submit_run(version, fiddle, on_output=on_output)
        result.steps.append((version, outcome))
        if outcome is RunResult.SUCCESS:
            low = index
        elif outcome is RunResult.FAILURE:
            high = index
        else:
            logger.warning("Bisect stopped: %s returned %s", version, outcome.value)
            return result

    result.good_version = versions[low]
    result.bad_version = versions[high]
    logger.info("Bisect finished good=%s bad=%s runs=%s", result.good_version, result.bad_version, len(result.steps))
    return result


class BisectController:
    def __init__(
        self,
        runner: RunnerBridge,
        catalog: VersionCatalog,
        *,
        on_output: OutputObserver | None = None,
    ) -> None:
        self.runner = runner
        self.catalog = catalog
        self.on_output = on_output

    async def bisect(self, good: Version, bad: Version, fiddle: Mapping[str, str]) -> BisectResult:
        if good == bad:
            logger.warning("Good and bad versions are identical: %s", good)
            return BisectResult()
        if good > bad:
            logger.warning("Swapping so that %s comes before %s", bad, good)
            good, bad = bad, good

        versions = self.catalog.versions_between(good, bad)
        logger.debug("Bisecting %s versions between %s and %s", len(versions), good, bad)
        return await bisect_versions(versions, self.runner, fiddle, on_output=self.on_output)
