"""
Command Line Interface for DFYML.
"""
import logging
import os

import click
from dotenv import dotenv_values

from ..BUILDERS.dockerfile_serializer import DockerfileSerializer
from ..PARSERS.dockerfile_yml_parser import DockerfileYmlParser
from ..errors import DockerfileYmlError


def _load(file, env_files, interpolate):
    """
    Parses the description.

    ``${VAR}`` references are substituted from the environment and env files
    only when ``--interpolate`` or ``--env-file`` is given.
    """
    context = None
    if interpolate or env_files:
        context = dict(os.environ)
        for env_file in env_files:
            values = dotenv_values(env_file)
            context.update({k: v for k, v in values.items() if v is not None})
    return DockerfileYmlParser(context).parse(file)


file_option = click.option('--file', '-f', default='dockerfile.yml', show_default=True,
                           help='Build description path')
env_file_option = click.option('--env-file', 'env_files', multiple=True,
                               type=click.Path(exists=True, dir_okay=False),
                               help='Extra variables for ${VAR} interpolation, implies --interpolate (repeatable)')
interpolate_option = click.option('--interpolate', '-i', is_flag=True,
                                  help='Substitute ${VAR} from the environment before parsing')


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Log resolution and emission steps')
def cli(verbose):
    """
    DFYML - render multi-stage Dockerfiles from YAML build descriptions.
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(levelname)s %(name)s: %(message)s')


@cli.command()
@file_option
@env_file_option
@interpolate_option
@click.option('--output', '-o', default='-', show_default=True,
              help='Dockerfile path, or - for stdout')
def render(file, env_files, interpolate, output):
    """Render the Dockerfile for a build description."""
    try:
        description = _load(file, env_files, interpolate)
        # rendered in full before the output is touched
        content = DockerfileSerializer().render(description)
    except DockerfileYmlError as e:
        raise click.ClickException(str(e))

    if output == '-':
        click.echo(content, nl=False)
        return

    with open(output, 'w', encoding='utf-8') as f:
        f.write(content)
    click.echo(f"Dockerfile written to {output}", err=True)


@cli.command()
@file_option
@env_file_option
@interpolate_option
def check(file, env_files, interpolate):
    """Validate cross-stage copies and show the stage order."""
    try:
        description = _load(file, env_files, interpolate)
        plan = DockerfileSerializer().plan(description)
    except DockerfileYmlError as e:
        raise click.ClickException(str(e))

    click.echo(f"{'STAGE':20} {'USED BY':30}")
    click.echo("-" * 50)
    for resolution in plan:
        name = resolution.name if resolution.name is not None else '(final)'
        used_by = ", ".join(sorted(d or '(final)' for d in resolution.dependents)) or '-'
        click.echo(f"{name:20} {used_by:30}".rstrip())
    if description.image:
        click.echo(f"Image: {description.image}")


def main():
    """
    Main entry point for the CLI.
    """
    cli()


if __name__ == '__main__':
    main()
