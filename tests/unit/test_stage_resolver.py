# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Unit tests for cross-stage copy resolution and stage ordering.
"""
import pytest
from dfyml.MODELS.build_description import Stage
from dfyml.RESOLVERS.stage_resolver import (
    FINAL_STAGE,
    StageResolution,
    StageResolver,
    join_stage_path,
)
from dfyml.errors import CyclicStageError, MissingStageError, MissingWorkdirError


def resolve_all(stages, final=None):
    resolver = StageResolver()
    table = {}
    for name, stage in stages.items():
        resolver.resolve(stage, table.setdefault(name, StageResolution(name=name)), stages, table)
    final_resolution = StageResolution()
    resolver.resolve(final or Stage(), final_resolution, stages, table)
    return table, final_resolution


class TestJoinStagePath:
    """Tests for join_stage_path."""

    def test_relative_path(self):
        assert join_stage_path("/go/src", "./a.txt") == "/go/src/a.txt"

    def test_absolute_path_stays_under_workdir(self):
        assert join_stage_path("/go/src", "/bin/app") == "/go/src/bin/app"

    def test_parent_and_empty_paths(self):
        assert join_stage_path("/go/src", "../out") == "/go/out"
        assert join_stage_path("/go/src/", "") == "/go/src"

    def test_leading_double_slash_collapsed(self):
        assert join_stage_path("//go", "a") == "/go/a"
        assert join_stage_path("/go", "//a") == "/go/a"


class TestStageResolver:
    """Tests for StageResolver.resolve."""

    def test_rewrites_cross_stage_copy(self):
        stages = {"builder": Stage(from_="busybox", workdir="/go/src")}
        table, final = resolve_all(stages, Stage(copy_={"builder:./a.txt": "./", "b.txt": "./"}))

        assert final.rewrites == {"builder:./a.txt": "--from=builder /go/src/a.txt"}
        assert table["builder"].dependents == {FINAL_STAGE}

    def test_splits_on_first_colon(self):
        stages = {"builder": Stage(workdir="/src")}
        _, final = resolve_all(stages, Stage(copy_={"builder:a:b": "./"}))
        assert final.rewrites == {"builder:a:b": "--from=builder /src/a:b"}

    def test_missing_stage(self):
        with pytest.raises(MissingStageError) as exc:
            resolve_all({}, Stage(copy_={"nope:./a.txt": "./"}))
        assert exc.value.stage == "nope"
        assert "missing stage nope" in str(exc.value)

    def test_missing_workdir(self):
        stages = {"builder": Stage(from_="busybox")}
        with pytest.raises(MissingWorkdirError) as exc:
            resolve_all(stages, Stage(copy_={"builder:./a.txt": "./"}))
        assert exc.value.stage == "builder"

    def test_consumer_counted_once(self):
        stages = {
            "builder": Stage(workdir="/src"),
            "app": Stage(workdir="/app", copy_={"builder:a": "./", "builder:b": "./"}),
        }
        table, _ = resolve_all(stages)
        assert table["builder"].dependents == {"app"}
        assert len(table["app"].rewrites) == 2

    def test_does_not_modify_stages(self):
        stages = {"builder": Stage(workdir="/src")}
        final = Stage(copy_={"builder:a": "./"})
        before = final.model_dump()
        resolve_all(stages, final)
        assert final.model_dump() == before


class TestStageOrder:
    """Tests for StageResolver.order."""

    def test_most_used_first_then_by_name(self):
        stages = {
            "solo": Stage(workdir="/s"),
            "common": Stage(workdir="/c"),
            "zeta": Stage(workdir="/z"),
            "alpha": Stage(workdir="/a", copy_={"common:x": "./"}),
        }
        table, _ = resolve_all(stages, Stage(copy_={"common:y": "./", "solo:z": "./", "zeta:w": "./"}))
        assert StageResolver().order(table) == ["common", "solo", "zeta", "alpha"]

    def test_unused_stages_sorted_by_name(self):
        stages = {"b": Stage(), "c": Stage(), "a": Stage()}
        table, _ = resolve_all(stages)
        assert StageResolver().order(table) == ["a", "b", "c"]

    def test_producer_before_consumer_in_chains(self):
        stages = {
            "a": Stage(workdir="/a", copy_={"b:out": "./"}),
            "b": Stage(workdir="/b"),
        }
        table, _ = resolve_all(stages, Stage(copy_={"a:out": "./"}))
        assert StageResolver().order(table) == ["b", "a"]

    def test_cycle_is_rejected(self):
        stages = {
            "a": Stage(workdir="/a", copy_={"b:out": "./"}),
            "b": Stage(workdir="/b", copy_={"a:out": "./"}),
            "c": Stage(workdir="/c"),
        }
        table, _ = resolve_all(stages)
        with pytest.raises(CyclicStageError) as exc:
            StageResolver().order(table)
        assert exc.value.stages == ["a", "b"]

    def test_self_copy_is_rejected(self):
        stages = {"a": Stage(workdir="/a", copy_={"a:out": "./"})}
        table, _ = resolve_all(stages)
        with pytest.raises(CyclicStageError):
            StageResolver().order(table)
