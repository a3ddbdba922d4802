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
Container engine backed by the Docker Engine API.
"""

import logging
import os
import tarfile
from typing import Dict, Optional

import docker
from docker.errors import DockerException, ImageNotFound
from dotenv import dotenv_values
from requests.exceptions import RequestException

from ..errors import BuildError, EngineError, PullError, RemoveError, SaveError
from ..UTILS.archive import stream_build_context
from .base import ContainerEngine, OutputCallback

logger = logging.getLogger(__name__)

# Variables the docker SDK reads to locate the engine
ENGINE_ENV_PREFIX = "DOCKER_"


def load_engine_environment(project_dir: str, environ: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """
    Builds the environment used to locate the engine.

    DOCKER_* values from a .env file in the project directory are used unless
    the process environment already sets them, as docker compose does.

    Args:
        project_dir: Directory of the compose file.
        environ: Process environment. Defaults to os.environ.

    Returns:
        Environment for docker.from_env().
    """
    environment = dict(os.environ if environ is None else environ)
    env_file = os.path.join(project_dir, ".env")
    if os.path.isfile(env_file):
        for key, value in dotenv_values(env_file).items():
            if key.startswith(ENGINE_ENV_PREFIX) and value is not None:
                environment.setdefault(key, value)
    return environment


class DockerEngine(ContainerEngine):
    """
    ContainerEngine implementation on top of the docker SDK's low-level API client.
    """

    SAVE_CHUNK_SIZE = 2 * 1024 * 1024

    def __init__(self, api: Optional[docker.APIClient] = None, environment: Optional[Dict[str, str]] = None):
        """
        Initialize the engine.

        Args:
            api: Low-level API client. Created from the environment when omitted.
            environment: Environment used to locate the engine. Defaults to os.environ.
        """
        if api is None:
            try:
                api = docker.from_env(environment=environment).api
            except DockerException as e:
                raise EngineError(f"cannot connect to the Docker engine: {e}") from e
        self.api = api
        logger.debug("Using Docker engine API version %s", getattr(api, "api_version", "unknown"))

    def build_image(
        self,
        context_dir: str,
        tag: str,
        dockerfile: str = "Dockerfile",
        build_args: Optional[Dict[str, str]] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> None:
        try:
            with stream_build_context(context_dir) as context:
                frames = self.api.build(
                    fileobj=context,
                    custom_context=True,
                    tag=tag,
                    dockerfile=dockerfile,
                    buildargs=build_args or {},
                    rm=True,
                    decode=True,
                )
                for frame in frames:
                    if frame.get("error"):
                        raise BuildError(f"build error: {frame['error'].strip()}")
                    if on_output and frame.get("stream"):
                        on_output(frame["stream"])
        except (DockerException, RequestException) as e:
            raise BuildError(f"build of {tag} failed: {e}") from e
        except (OSError, tarfile.TarError) as e:
            raise BuildError(f"cannot archive build context {context_dir}: {e}") from e

    def pull_image(self, reference: str, on_output: Optional[OutputCallback] = None) -> None:
        try:
            for frame in self.api.pull(reference, stream=True, decode=True):
                if frame.get("error"):
                    raise PullError(f"pull error: {frame['error'].strip()}")
                if on_output and frame.get("status"):
                    layer = frame.get("id")
                    status = frame["status"]
                    on_output(f"{layer}: {status}\n" if layer else f"{status}\n")
        except (DockerException, RequestException) as e:
            raise PullError(f"pull of {reference} failed: {e}") from e

    def image_exists(self, reference: str) -> bool:
        try:
            self.api.inspect_image(reference)
        except ImageNotFound:
            return False
        except (DockerException, RequestException) as e:
            raise PullError(f"cannot inspect image {reference}: {e}") from e
        return True

    def save_image(self, reference: str, dest_path: str) -> None:
        try:
            chunks = self.api.get_image(reference, chunk_size=self.SAVE_CHUNK_SIZE)
            with open(dest_path, "wb") as f:
                for chunk in chunks:
                    f.write(chunk)
        except (DockerException, RequestException, OSError) as e:
            raise SaveError(f"cannot save image {reference}: {e}") from e

    def remove_image(self, reference: str) -> None:
        try:
            self.api.remove_image(reference, force=False, noprune=False)
        except (DockerException, RequestException) as e:
            raise RemoveError(f"cannot remove image {reference}: {e}") from e
