"""
Exports resolved images to tar files.
"""
import logging
import os
from typing import List

from ..ENGINE.base import ContainerEngine
from ..errors import SaveError
from ..MODELS.resolved_images import ResolvedImages

logger = logging.getLogger(__name__)


class ImageExporter:
    """
    Saves images from the engine to disk.
    """
    def __init__(self, engine: ContainerEngine):
        self.engine = engine

    def save(self, reference: str, dest_path: str) -> str:
        """
        Saves exactly one image to a tar file. A partially written file is removed.

        :param reference: Image reference.
        :param dest_path: Path of the tar file.
        :return: dest_path.
        :raises SaveError: If the engine or the filesystem fails.
        """
        logger.info("Saving image %s to %s...", reference, dest_path)
        try:
            self.engine.save_image(reference, dest_path)
        except SaveError:
            self._discard(dest_path)
            raise
        except OSError as e:
            self._discard(dest_path)
            raise SaveError(f"cannot save image {reference}: {e}") from e
        return dest_path

    def export_all(self, resolved: ResolvedImages, images_dir: str) -> List[str]:
        """
        Saves every unique resolved image into images_dir.

        :return: Paths of the written tar files.
        """
        return [
            self.save(reference, os.path.join(images_dir, filename))
            for reference, filename in resolved.archives.items()
        ]

    @staticmethod
    def _discard(path: str) -> None:
        if os.path.exists(path):
            os.remove(path)
