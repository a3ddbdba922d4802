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
Runs the bundling pipeline: parse, validate, resolve, assemble, clean up.
"""
import logging
import os
from typing import Callable, Optional
from ..BUILDERS.image_resolver import ImageResolver, echo_stream
from ..CONVERTERS.to_bundle import BundleAssembler
from ..ENGINE.base import ContainerEngine
from ..ENGINE.docker_engine import DockerEngine, load_engine_environment
from ..MODELS.bundler_config import BundlerConfig
from ..MODELS.resolved_images import RunState
from ..PARSERS.compose_parser import ComposeParser, validate_bundle_metadata
from .image_cleanup import ImageCleanup
from .image_exporter import ImageExporter

logger = logging.getLogger(__name__)


def docker_engine_for(project_dir: str) -> ContainerEngine:
    """
    Connects to the Docker engine configured for a compose project.
    """
    return DockerEngine(environment=load_engine_environment(project_dir))


class BundleOrchestrator:
    """
    Produces a bundle from a compose file, one engine operation at a time.
    """
    def __init__(
        self,
        config: Optional[BundlerConfig] = None,
        engine: Optional[ContainerEngine] = None,
        engine_factory: Callable[[str], ContainerEngine] = docker_engine_for,
        echo: Callable[[str], None] = echo_stream,
    ):
        """
        Initializes the orchestrator.

        :param config: Run settings.
        :param engine: Engine to use. When omitted, one is created by engine_factory once the
            compose file has been validated.
        :param engine_factory: Creates an engine from the compose file's directory.
        :param echo: Receives build logs and pull progress.
        """
        self.config = config or BundlerConfig()
        self.engine = engine
        self.engine_factory = engine_factory
        self.echo = echo
        self.parser = ComposeParser()
        self.state = RunState()

    def bundle(self, compose_path: str, output_path: Optional[str] = None) -> str:
        """
        Builds the bundle for a compose file.

        Cleanup of pulled and built images is attempted after the run whether it
        succeeded or not, and never fails the run.

        :param compose_path: Path to the compose file.
        :param output_path: Bundle path. Defaults to the configured output path.
        :return: Path of the written bundle.
        :raises BundlerError: On any failure before the bundle is written.
        """
        output_path = output_path or self.config.output_path
        base_dir = os.path.dirname(os.path.abspath(compose_path))

        manifest = self.parser.parse(compose_path)
        validate_bundle_metadata(manifest)
        metadata = manifest.x_bundle
        logger.info("Bundling %s %s from %s", metadata.name, metadata.version, compose_path)

        if self.engine is None:
            self.engine = self.engine_factory(base_dir)

        try:
            resolver = ImageResolver(self.engine, base_dir, metadata, self.state, echo=self.echo)
            resolved = resolver.resolve_all(manifest)

            assembler = BundleAssembler(ImageExporter(self.engine), self.parser)
            assembler.assemble(manifest, resolved, output_path)
        finally:
            self.cleanup()

        return output_path

    def cleanup(self) -> None:
        if not self.config.cleanup:
            logger.debug("Image cleanup disabled")
            return
        ImageCleanup(self.engine, self.config.built_image_prefix).run(self.state)
