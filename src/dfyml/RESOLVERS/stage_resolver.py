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
Resolution of cross-stage copies and the order in which stages are emitted.
"""
import heapq
import logging
import posixpath
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Set

from ..MODELS.build_description import Stage
from ..errors import CyclicStageError, MissingStageError, MissingWorkdirError

logger = logging.getLogger(__name__)

# Consumer identifier used for the final, unnamed stage.
FINAL_STAGE = ""


@dataclass
class StageResolution:
    """
    Derived state of one stage for a single serialization call.

    Kept beside the caller's Stage instead of on it, so the description
    itself is never modified.
    """

    name: Optional[str] = None
    dependents: Set[str] = field(default_factory=set)
    rewrites: Dict[str, str] = field(default_factory=dict)

    @property
    def identifier(self) -> str:
        return FINAL_STAGE if self.name is None else self.name


def join_stage_path(workdir: str, path: str) -> str:
    """
    Joins a path inside another stage onto that stage's working directory.

    ``path`` is always placed under ``workdir``, even when it is absolute.
    """
    joined = posixpath.normpath(posixpath.join(workdir, path.lstrip("/")))
    # normpath keeps exactly two leading slashes
    if joined.startswith("//"):
        joined = "/" + joined.lstrip("/")
    return joined


class StageResolver:
    """
    Validates ``<stage>:<path>`` copy sources and orders stages for emission.
    """

    def resolve(self,
                stage: Stage,
                resolution: StageResolution,
                stages: Mapping[str, Stage],
                table: Dict[str, StageResolution]):
        """
        Records the copy rewrites of one stage and marks the stages it copies from.

        :param stage: The stage whose copy sources are scanned.
        :param resolution: Derived state of ``stage``; receives the rewrites.
        :param stages: All named stages of the description.
        :param table: Derived state of the named stages, keyed by name.
        :raises MissingStageError: If a copy source names an unknown stage.
        :raises MissingWorkdirError: If the referenced stage has no workdir.
        """
        for source in stage.copy_:
            stage_name, sep, path = source.partition(":")
            if not sep:
                continue

            referenced = stages.get(stage_name)
            if referenced is None:
                raise MissingStageError(stage_name)
            if not referenced.workdir:
                raise MissingWorkdirError(stage_name)

            producer = table.setdefault(stage_name, StageResolution(name=stage_name))
            producer.dependents.add(resolution.identifier)

            rewritten = f"--from={stage_name} {join_stage_path(referenced.workdir, path)}"
            resolution.rewrites[source] = rewritten
            logger.debug("Stage %r copies %r as %r", resolution.identifier, source, rewritten)

    def order(self, table: Mapping[str, StageResolution]) -> List[str]:
        """
        Determines the order in which named stages are written.

        Stages with more dependents come first, ties broken by name, but a
        stage is never placed before a stage it copies from.

        :param table: Derived state of every named stage.
        :return: Stage names in emission order.
        :raises CyclicStageError: If stages copy from each other in a cycle.
        """
        # producer -> consumers among the named stages
        blocking = {name: 0 for name in table}
        for name, resolution in table.items():
            for consumer in resolution.dependents:
                if consumer in blocking:
                    blocking[consumer] += 1

        def rank(name):
            return (-len(table[name].dependents), name)

        ready = [rank(name) for name, count in blocking.items() if count == 0]
        heapq.heapify(ready)

        ordered = []
        while ready:
            _, name = heapq.heappop(ready)
            ordered.append(name)
            for consumer in table[name].dependents:
                if consumer not in blocking:
                    continue
                blocking[consumer] -= 1
                if blocking[consumer] == 0:
                    heapq.heappush(ready, rank(consumer))

        if len(ordered) != len(table):
            raise CyclicStageError(name for name in table if name not in ordered)

        logger.debug("Stage order: %s", ordered)
        return ordered
