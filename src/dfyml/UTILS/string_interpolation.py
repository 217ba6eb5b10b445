"""
Utilities for string interpolation using environment variables.
"""
import re
from typing import Mapping


class EnvironmentInterpolator:
    """
    Replaces ``${VAR}``, ``${VAR:-default}`` and ``${VAR:+value}`` in a string.

    ``$$`` stands for a literal ``$``, so ``$${HOME}`` is left for the
    container to expand.
    """
    # Group 1: escaped dollar
    # Group 2: VAR name
    # Group 3: - or +
    # Group 4: default or value
    PATTERN = re.compile(r'(\$\$)|\$\{([^}:]+)(?::(-|\+)([^}]*))?\}')

    @classmethod
    def interpolate(cls, template: str, context: Mapping[str, str]) -> str:
        """
        Interpolates environment variables in the template string using the provided context.

        :param template: The string containing ${VAR} placeholders.
        :param context: The environment variables context.
        :return: The interpolated string.
        :raises KeyError: If a variable is not set and no default is provided.
        """
        def replace(match):
            if match.group(1):
                return '$'

            var_name = match.group(2)
            modifier = match.group(3)
            alt_value = match.group(4)
            value = context.get(var_name)

            if modifier == '-':
                return value if value else alt_value
            if modifier == '+':
                return alt_value if value else ''
            if value is None:
                raise KeyError(var_name)
            return value

        return cls.PATTERN.sub(replace, template)
