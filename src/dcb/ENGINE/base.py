"""
Capability interface of the container engine the bundler drives.
"""
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

# Receives build log and pull status lines as the engine reports them
OutputCallback = Callable[[str], None]


class ContainerEngine(ABC):
    """
    Operations the bundler needs from a container engine.

    Implementations raise BuildError, PullError, SaveError or RemoveError from
    dcb.errors, carrying the engine's message.
    """

    @abstractmethod
    def build_image(
        self,
        context_dir: str,
        tag: str,
        dockerfile: str = "Dockerfile",
        build_args: Optional[Dict[str, str]] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> None:
        """
        Builds an image from a local build context and tags it.

        :param context_dir: Build context directory.
        :param tag: Reference the image is tagged with.
        :param dockerfile: Dockerfile path relative to the context.
        :param build_args: Build-time variables.
        :param on_output: Called with every build log line.
        """

    @abstractmethod
    def pull_image(self, reference: str, on_output: Optional[OutputCallback] = None) -> None:
        """
        Pulls an image from its registry.

        :param reference: Image reference.
        :param on_output: Called with every status line.
        """

    @abstractmethod
    def image_exists(self, reference: str) -> bool:
        """
        Checks whether the engine has the image locally.
        """

    @abstractmethod
    def save_image(self, reference: str, dest_path: str) -> None:
        """
        Writes the engine's tar export of exactly one image to dest_path.
        """

    @abstractmethod
    def remove_image(self, reference: str) -> None:
        """
        Removes an image from the engine.
        """
