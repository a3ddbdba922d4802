"""
Command Line Interface for DCB.
"""
import logging
import click
from .. import __version__
from ..errors import BundlerError
from ..MANAGERS.bundle_orchestrator import BundleOrchestrator
from ..MODELS.bundler_config import BundlerConfig, DEFAULT_BUILT_IMAGE_PREFIX, DEFAULT_OUTPUT
from ..UTILS.logging_setup import configure_logging

logger = logging.getLogger(__name__)


@click.command(context_settings={'help_option_names': ['-h', '--help']})
@click.argument('compose_file', type=click.Path(dir_okay=False))
@click.argument('output', required=False, default=DEFAULT_OUTPUT)
@click.option('--cleanup/--no-cleanup', default=True,
              help='Remove images pulled or built during the run once the bundle is written.')
@click.option('--built-image-prefix', default=DEFAULT_BUILT_IMAGE_PREFIX, show_default=True,
              help='Only built images whose reference starts with this prefix are cleaned up.')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.version_option(__version__, prog_name='docker-compose-bundler')
@click.pass_context
def cli(ctx, compose_file, output, cleanup, built_image_prefix, verbose):
    """
    Bundle a Docker Compose stack and all of its images for offline deployment.

    Builds or pulls every image used by COMPOSE_FILE, saves them as tar files and
    packs them with the compose file and loader scripts into OUTPUT
    (default: bundle.tar.gz).
    """
    config = BundlerConfig(
        output_path=output,
        cleanup=cleanup,
        built_image_prefix=built_image_prefix,
        verbose=verbose,
    )
    configure_logging(config.verbose)

    obj = ctx.obj or {}
    orchestrator = BundleOrchestrator(config, engine=obj.get('engine'))
    try:
        bundle_path = orchestrator.bundle(compose_file, output)
    except BundlerError as e:
        logger.error("Error: %s", e)
        logger.debug("Bundling failed", exc_info=True)
        ctx.exit(1)

    click.echo(f"Successfully created bundle: {bundle_path}")


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
