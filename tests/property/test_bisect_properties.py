from __future__ import annotations

import asyncio
import math

from hypothesis import given, settings
from hypothesis import strategies as st

from fiddlectl.bisection import bisect_versions
from fiddlectl.runner import RunResult
from fiddlectl.versions.models import Version


class ThresholdRunner:
    def __init__(self, first_bad: Version) -> None:
        self.first_bad = first_bad
        self.calls: list[Version] = []

    async def submit_run(self, version, fiddle, *, on_output=None) -> RunResult:
        self.calls.append(version)
        return RunResult.FAILURE if version >= self.first_bad else RunResult.SUCCESS


@settings(deadline=None)
@given(st.integers(min_value=2, max_value=300), st.data())
def test_bisect_finds_adjacent_boundary_within_log_steps(count: int, data: st.DataObject) -> None:
    versions = [Version(1, minor, 0) for minor in range(count)]
    first_bad = data.draw(st.integers(min_value=1, max_value=count - 1))
    runner = ThresholdRunner(versions[first_bad])

    result = asyncio.run(bisect_versions(versions, runner, {}))

    assert result.resolved
    assert len(runner.calls) <= math.ceil(math.log2(count))
    assert versions.index(result.good_version) + 1 == versions.index(result.bad_version)
    assert result.bad_version == versions[first_bad]


@settings(deadline=None)
@given(st.integers(min_value=2, max_value=300), st.data())
def test_bisect_never_runs_a_version_twice_or_the_bounds(count: int, data: st.DataObject) -> None:
    versions = [Version(2, 0, patch) for patch in range(count)]
    first_bad = data.draw(st.integers(min_value=1, max_value=count - 1))
    runner = ThresholdRunner(versions[first_bad])

    asyncio.run(bisect_versions(versions, runner, {}))

    assert len(set(runner.calls)) == len(runner.calls)
    assert versions[0] not in runner.calls
    assert versions[-1] not in runner.calls
