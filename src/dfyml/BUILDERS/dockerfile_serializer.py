"""
Serialization of a whole build description into a Dockerfile.
"""
import io
import logging
from typing import Dict, List, TextIO, Tuple

from ..MODELS.build_description import BuildDescription
from ..RESOLVERS.stage_resolver import StageResolution, StageResolver
from ..ENCODERS.directive_encoder import DirectiveEncoder

logger = logging.getLogger(__name__)


class DockerfileSerializer:
    """
    Resolves every stage of a description, orders the named stages and
    writes them, followed by the final stage.
    """
    def __init__(self):
        self.resolver = StageResolver()
        self.encoder = DirectiveEncoder()

    def resolve(self, description: BuildDescription) -> Tuple[Dict[str, StageResolution], StageResolution]:
        """
        Runs cross-stage copy resolution for every stage, the final one last.

        :param description: The build description.
        :return: Derived state of the named stages keyed by name, and of the final stage.
        """
        table: Dict[str, StageResolution] = {}
        for name, stage in description.stages.items():
            resolution = table.setdefault(name, StageResolution(name=name))
            self.resolver.resolve(stage, resolution, description.stages, table)

        final = StageResolution()
        self.resolver.resolve(description.stage, final, description.stages, table)
        return table, final

    def plan(self, description: BuildDescription) -> List[StageResolution]:
        """
        Resolves ``description`` and returns its stages in emission order.

        The final stage is always last.
        """
        table, final = self.resolve(description)
        return [table[name] for name in self.resolver.order(table)] + [final]

    def serialize(self, description: BuildDescription, sink: TextIO):
        """
        Writes the Dockerfile for ``description`` to ``sink``.

        All stages are validated before the first line is written. Errors
        raised by the sink itself propagate unchanged, possibly after some
        lines were already written.

        :param description: The build description.
        :param sink: Any object with a ``write(str)`` method.
        :raises MissingStageError: If a copy source names an unknown stage.
        :raises MissingWorkdirError: If a referenced stage has no workdir.
        :raises CyclicStageError: If stages copy from each other in a cycle.
        """
        for resolution in self.plan(description):
            if resolution.name is None:
                logger.debug("Encoding final stage")
                stage = description.stage
            else:
                logger.debug("Encoding stage %s (%d dependents)",
                             resolution.name, len(resolution.dependents))
                stage = description.stages[resolution.name]
            self.encoder.encode(stage, sink, resolution)

    def render(self, description: BuildDescription) -> str:
        """
        Returns the Dockerfile for ``description`` as a string.
        """
        buffer = io.StringIO()
        self.serialize(description, buffer)
        return buffer.getvalue()


def write_dockerfile(sink: TextIO, description: BuildDescription):
    """
    Writes the Dockerfile for ``description`` to ``sink``.
    """
    DockerfileSerializer().serialize(description, sink)
