"""
Best-effort removal of the images a run added to the engine.
"""
import logging
from typing import List

from ..ENGINE.base import ContainerEngine
from ..errors import BundlerError
from ..MODELS.bundler_config import DEFAULT_BUILT_IMAGE_PREFIX
from ..MODELS.resolved_images import RunState

logger = logging.getLogger(__name__)


class ImageCleanup:
    """
    Removes freshly pulled images, and built images matching a name prefix.
    Failures are logged and never raised.
    """
    def __init__(self, engine: ContainerEngine, built_image_prefix: str = DEFAULT_BUILT_IMAGE_PREFIX):
        """
        :param engine: Engine to remove images from.
        :param built_image_prefix: Only built images whose reference starts with this are removed.
        """
        self.engine = engine
        self.built_image_prefix = built_image_prefix

    def built_images_to_remove(self, state: RunState) -> List[str]:
        return [ref for ref in state.built if ref.startswith(self.built_image_prefix)]

    def run(self, state: RunState) -> List[str]:
        """
        Removes the images of a run.

        :param state: Run state of the finished run.
        :return: References that could not be removed.
        """
        failed = []
        for reference in self.built_images_to_remove(state):
            if not self._remove(reference, "built"):
                failed.append(reference)
        for reference in state.pulled:
            if not self._remove(reference, "freshly pulled"):
                failed.append(reference)
        if failed:
            logger.warning("Failed to clean up some images: %s", ", ".join(failed))
        return failed

    def _remove(self, reference: str, kind: str) -> bool:
        logger.info("Removing %s image %s...", kind, reference)
        try:
            self.engine.remove_image(reference)
        except BundlerError as e:
            logger.warning("Failed to remove %s image %s: %s", kind, reference, e)
            return False
        return True
