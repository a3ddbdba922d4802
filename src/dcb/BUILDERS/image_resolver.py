"""
Resolves every service of a compose file to one concrete image, building or pulling it as needed.
"""
import logging
import os
from typing import Callable, Optional

import click

from ..ENGINE.base import ContainerEngine
from ..errors import BuildError, BundlerError
from ..MODELS.compose_manifest import DEFAULT_DOCKERFILE, BundleMetadata, ComposeManifest, ServiceDefinition
from ..MODELS.resolved_images import ResolvedImages, RunState
from ..REGISTRY.image_reference import ImageReference

logger = logging.getLogger(__name__)


def echo_stream(text: str) -> None:
    """
    Writes engine output to stdout as it arrives. Engine lines carry their own newlines.
    """
    click.echo(text, nl=False)


class ImageResolver:
    """
    Turns each service's build or image section into an image present in the engine.
    """
    def __init__(
        self,
        engine: ContainerEngine,
        base_dir: str,
        metadata: BundleMetadata,
        state: Optional[RunState] = None,
        echo: Callable[[str], None] = echo_stream,
    ):
        """
        Initializes the resolver.

        :param engine: Engine used to build, inspect and pull images.
        :param base_dir: Directory of the compose file; relative build contexts start here.
        :param metadata: Validated bundle metadata, used to name built images.
        :param state: Run state recording built and pulled images.
        :param echo: Receives build logs and pull progress.
        """
        self.engine = engine
        self.base_dir = base_dir
        self.metadata = metadata
        self.state = state if state is not None else RunState()
        self.echo = echo

    def resolve_all(self, manifest: ComposeManifest) -> ResolvedImages:
        """
        Resolves all services in name order, rewriting built services to their new image.

        :param manifest: The manifest; mutated in place.
        :return: Resolved images, keyed by reference.
        :raises BundlerError: The first failure, prefixed with the service name.
        """
        resolved = ResolvedImages()
        for name, service in manifest.sorted_services():
            try:
                reference = self.resolve(name, service)
            except BundlerError as e:
                raise type(e)(f"failed to process service {name}: {e}") from e
            if reference:
                resolved.add(name, reference)
        return resolved

    def resolve(self, name: str, service: ServiceDefinition) -> Optional[str]:
        """
        Resolves one service. A build section takes precedence over an image.

        :param name: Service name.
        :param service: Service definition; its build section is replaced by the built image.
        :return: Image reference, or None if the service has neither build nor image.
        """
        if service.build is not None:
            return self._build(name, service)
        if service.image:
            return self._pull_if_missing(service.image)
        logger.info("Service %s has no build or image, skipping", name)
        return None

    def _build(self, name: str, service: ServiceDefinition) -> str:
        config = service.build_config()
        reference = str(ImageReference.for_build(self.metadata.name, name, self.metadata.version))

        context = config.context
        if not os.path.isabs(context):
            context = os.path.join(self.base_dir, context)
        if not os.path.isdir(context):
            raise BuildError(f"build context {context} is not a directory")
        dockerfile = config.dockerfile or DEFAULT_DOCKERFILE

        logger.info("Building image %s from %s...", reference, context)
        self.engine.build_image(
            context,
            reference,
            dockerfile=dockerfile,
            build_args=config.resolved_args(),
            on_output=self.echo,
        )
        self.state.record_built(reference)

        service.image = reference
        service.build = None
        return reference

    def _pull_if_missing(self, reference: str) -> str:
        if self.engine.image_exists(reference):
            logger.info("Image %s already exists locally", reference)
            return reference

        logger.info("Pulling image %s...", reference)
        # Recorded before pulling so a half-finished pull is cleaned up too
        self.state.record_pulled(reference)
        self.engine.pull_image(reference, on_output=self.echo)
        return reference
