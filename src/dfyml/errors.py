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
Exceptions raised while loading, resolving and rendering build descriptions.
"""
from typing import Iterable


class DockerfileYmlError(Exception):
    """Base class for all dfyml errors."""


class MissingStageError(DockerfileYmlError):
    """
    A copy source references a stage that is not part of the description.
    """
    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"missing stage {stage}")


class MissingWorkdirError(DockerfileYmlError):
    """
    A copy source references a stage that has no working directory.
    """
    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"stage {stage} must define workdir for copy file")


class CyclicStageError(DockerfileYmlError):
    """
    Stages copy from each other in a cycle, so no emission order exists.
    """
    def __init__(self, stages: Iterable[str]):
        self.stages = sorted(stages)
        super().__init__(f"circular copy dependency between stages: {', '.join(self.stages)}")


class ConfigError(DockerfileYmlError):
    """The YAML build description could not be loaded."""
