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
Encoding of a single stage into Dockerfile directives.

Every directive is described by a row of ``DIRECTIVE_FIELDS``: the Dockerfile
keyword, the Stage attribute it reads, the shape of that attribute and the
formatting flags applied to it. Rows are written in table order.
"""
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, TextIO, Tuple

from ..MODELS.build_description import Stage
from ..RESOLVERS.stage_resolver import StageResolution

logger = logging.getLogger(__name__)


class FieldShape(str, Enum):
    """
    Python shape of a Stage attribute.
    """
    SCALAR = "scalar"
    SEQUENCE = "sequence"
    MAPPING = "mapping"


# Formatting flags
INLINE = "inline"    # scalar written verbatim, never quoted
ARRAY = "array"      # sequence written as a JSON array
SCRIPT = "script"    # sequence chained with &&
MULTI = "multi"      # mapping written as key=value pairs on one line
JOIN = "join"        # mapping grouped by destination


@dataclass(frozen=True)
class DirectiveField:
    """
    Links a Dockerfile keyword to the Stage attribute it is written from.
    """
    keyword: str
    attribute: str
    shape: FieldShape
    flags: FrozenSet[str] = frozenset()


DIRECTIVE_FIELDS: Tuple[DirectiveField, ...] = (
    DirectiveField("FROM", "from_", FieldShape.SCALAR),
    DirectiveField("LABEL", "label", FieldShape.MAPPING, frozenset({MULTI})),
    DirectiveField("WORKDIR", "workdir", FieldShape.SCALAR),
    DirectiveField("ENV", "env", FieldShape.MAPPING, frozenset({MULTI})),
    DirectiveField("ADD", "add", FieldShape.MAPPING, frozenset({JOIN})),
    DirectiveField("COPY", "copy_", FieldShape.MAPPING),
    DirectiveField("RUN", "run", FieldShape.SEQUENCE, frozenset({SCRIPT})),
    DirectiveField("EXPOSE", "expose", FieldShape.SEQUENCE),
    DirectiveField("VOLUME", "volume", FieldShape.SEQUENCE, frozenset({ARRAY})),
    DirectiveField("ENTRYPOINT", "entrypoint", FieldShape.SEQUENCE, frozenset({ARRAY})),
    DirectiveField("CMD", "cmd", FieldShape.SEQUENCE, frozenset({ARRAY})),
)


def may_quote(value: str) -> str:
    """
    Quotes a value that is empty or contains a space.

    The quoted form is a JSON string literal, so the usual unquoting gives
    back the original value.
    """
    if value == "" or " " in value:
        return json.dumps(value, ensure_ascii=False)
    return value


def array_literal(values: List[str]) -> str:
    """Renders exec-form arguments, e.g. ``["sh","-c"]``."""
    return json.dumps(values, ensure_ascii=False, separators=(",", ":"))


class DirectiveEncoder:
    """
    Writes the directives of one stage to a text sink.
    """
    def __init__(self, fields: Tuple[DirectiveField, ...] = DIRECTIVE_FIELDS):
        self.fields = fields

    def encode(self, stage: Stage, sink: TextIO, resolution: Optional[StageResolution] = None):
        """
        Writes one line per non-empty field of ``stage``.

        :param stage: The stage to encode.
        :param sink: Any object with a ``write(str)`` method.
        :param resolution: Name and copy rewrites of the stage, if resolved.
        :raises TypeError: If a field's value does not match its declared shape.
        """
        resolution = resolution or StageResolution()
        for directive in self.fields:
            value = getattr(stage, directive.attribute)
            for values in self._format(directive, value):
                self._write(sink, directive.keyword, values, resolution)

    def _format(self, directive: DirectiveField, value) -> List[List[str]]:
        """
        Turns a field value into the value tokens of zero or more directives.
        """
        if not value:
            return []

        shape = directive.shape
        flags = directive.flags

        if shape is FieldShape.SCALAR:
            if not isinstance(value, str):
                raise TypeError(f"{directive.keyword}: expected str, got {type(value).__name__}")
            return [[value if INLINE in flags else may_quote(value)]]

        if shape is FieldShape.SEQUENCE:
            if not isinstance(value, (list, tuple)):
                raise TypeError(f"{directive.keyword}: expected a list, got {type(value).__name__}")
            items = [str(v) for v in value]
            if ARRAY in flags:
                return [[array_literal(items)]]
            if SCRIPT in flags:
                return [[" && ".join(items)]]
            return [["".join(items)]]

        if shape is FieldShape.MAPPING:
            if not isinstance(value, dict):
                raise TypeError(f"{directive.keyword}: expected a dict, got {type(value).__name__}")
            if JOIN in flags:
                by_destination: Dict[str, List[str]] = {}
                for source, destination in value.items():
                    by_destination.setdefault(destination, []).append(source)
                return [
                    sorted(by_destination[destination]) + [destination]
                    for destination in sorted(by_destination)
                ]
            keys = sorted(value)
            if MULTI in flags:
                return [[f"{key}={may_quote(value[key])}" for key in keys]]
            return [[key, may_quote(value[key])] for key in keys]

        raise TypeError(f"{directive.keyword}: unsupported field shape {shape!r}")

    def _write(self, sink: TextIO, keyword: str, values: List[str], resolution: StageResolution):
        tokens = [keyword]
        for value in values:
            if keyword == "FROM" and resolution.name:
                value += " as " + resolution.name
            elif keyword == "COPY":
                value = resolution.rewrites.get(value, value)
            tokens.append(value)

        line = " ".join(tokens)
        logger.debug("Writing %s", line)
        sink.write(line + "\n")
