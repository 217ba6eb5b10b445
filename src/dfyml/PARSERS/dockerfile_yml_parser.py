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
Parsers for dockerfile.yml build descriptions.
"""
import logging
from typing import Dict, Mapping, Optional

import yaml
from pydantic import ValidationError

from ..MODELS.build_description import BuildDescription
from ..UTILS.string_interpolation import EnvironmentInterpolator
from ..errors import ConfigError

logger = logging.getLogger(__name__)

# Implicit tags dropped so plain scalars keep their text (1.10, 0755, 2024-01-01).
_TYPED_TAGS = {
    'tag:yaml.org,2002:bool',
    'tag:yaml.org,2002:int',
    'tag:yaml.org,2002:float',
    'tag:yaml.org,2002:timestamp',
}


class StringScalarLoader(yaml.SafeLoader):
    """
    SafeLoader that resolves plain scalars to strings, except for null.
    """


StringScalarLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag not in _TYPED_TAGS]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


class DockerfileYmlParser:
    """
    Parser for dockerfile.yml files.

    A document looks like::

        image: example/app:latest
        stages:
          builder:
            from: golang:1.22
            workdir: /go/src
            run:
              - go build -o app .
        from: busybox
        copy:
          builder:./app: /usr/local/bin/app
        cmd: [app]

    ``${VAR}`` references are left for the builder unless a context is given.
    """
    def __init__(self, context: Optional[Mapping[str, str]] = None):
        """
        Initializes the parser with an optional environment context for interpolation.

        :param context: Variables substituted into the document before parsing.
            None disables interpolation.
        """
        self.context: Optional[Dict[str, str]] = None if context is None else dict(context)

    def parse(self, path: str) -> BuildDescription:
        """
        Parses a build description from a path.

        :param path: Path to the dockerfile.yml file.
        :return: Parsed build description.
        :raises ConfigError: If the file cannot be read or is not a valid description.
        """
        try:
            with open(path, 'r', encoding='utf-8') as f:
                content = f.read()
        except OSError as e:
            raise ConfigError(f"{path}: {e.strerror or e}") from e

        try:
            return self.parse_from_string(content)
        except ConfigError as e:
            raise ConfigError(f"{path}: {e}") from e

    def parse_from_string(self, content: str) -> BuildDescription:
        """
        Parses a build description from a string.

        :param content: YAML content of the description.
        :return: Parsed build description.
        :raises ConfigError: If the content is not a valid description.
        """
        if self.context is not None:
            try:
                content = EnvironmentInterpolator.interpolate(content, self.context)
            except KeyError as e:
                raise ConfigError(f"variable {e.args[0]} is not set") from e

        try:
            data = yaml.load(content, Loader=StringScalarLoader)
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"expected a mapping at the top level, got {type(data).__name__}")

        try:
            description = BuildDescription.model_validate(data)
        except ValidationError as e:
            raise ConfigError(self._format_errors(e)) from e

        logger.debug("Parsed description with %d named stages", len(description.stages))
        return description

    def _format_errors(self, error: ValidationError) -> str:
        """
        Flattens pydantic errors into one line per offending key.
        """
        lines = []
        for item in error.errors():
            location = ".".join(str(part) for part in item["loc"])
            lines.append(f"{location}: {item['msg']}")
        return "invalid build description:\n  " + "\n  ".join(lines)
