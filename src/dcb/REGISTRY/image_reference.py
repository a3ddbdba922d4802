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
Image reference parsing and handling.
Splits Docker image references like 'redis:7-alpine' or 'localhost:5000/app@sha256:...'
and derives the tar filenames images are saved under.
"""

from typing import Optional
from dataclasses import dataclass

# Characters that are not allowed in filenames on at least one supported platform
DISALLOWED_FILENAME_CHARS = '/:\\*?"<>|'

_FILENAME_TABLE = str.maketrans({char: "-" for char in DISALLOWED_FILENAME_CHARS})


def sanitize_filename(name: str) -> str:
    """
    Replace characters that are unsafe in filenames with '-'.

    Args:
        name: Arbitrary string, usually an image reference.

    Returns:
        The sanitized string. Sanitizing twice gives the same result as once.
    """
    return name.translate(_FILENAME_TABLE)


@dataclass
class ImageReference:
    """
    Parsed Docker image reference, kept as written.

    Unlike the engine, no default registry or tag is filled in, so that
    str(ImageReference.parse(ref)) == ref.

    Examples:
        - redis -> repository='redis'
        - redis:7-alpine -> repository='redis', tag='7-alpine'
        - localhost:5000/app:v1 -> repository='localhost:5000/app', tag='v1'
        - gcr.io/project/image@sha256:abc123 -> repository='gcr.io/project/image', digest='sha256:abc123'
    """

    repository: str
    tag: Optional[str] = None
    digest: Optional[str] = None

    DEFAULT_TAG = "latest"
    BUNDLE_NAMESPACE = "bundles"

    @classmethod
    def parse(cls, reference: str) -> "ImageReference":
        """
        Parse a Docker image reference string.

        Args:
            reference: Image reference string (e.g., 'redis:7-alpine', 'myuser/myimage:v1')

        Returns:
            Parsed ImageReference object.
        """
        if not reference:
            raise ValueError("Empty image reference")

        # Handle digest format (image@sha256:...)
        digest = None
        if "@" in reference:
            reference, digest = reference.rsplit("@", 1)

        # Handle tag format (image:tag)
        tag = None
        last_colon = reference.rfind(":")
        if last_colon != -1:
            after_colon = reference[last_colon + 1 :]
            # A slash after the colon means it belongs to a registry port (localhost:5000/image)
            if "/" not in after_colon:
                tag = after_colon
                reference = reference[:last_colon]

        return cls(repository=reference, tag=tag, digest=digest)

    @classmethod
    def for_build(cls, bundle_name: str, service_name: str, bundle_version: str) -> "ImageReference":
        """
        Reference under which an image built for a bundle is tagged.

        Args:
            bundle_name: Name from the x-bundle block.
            service_name: Compose service the image is built for.
            bundle_version: Version from the x-bundle block.

        Returns:
            bundles/<bundle_name>/<service_name>:<bundle_version>
        """
        return cls(
            repository=f"{cls.BUNDLE_NAMESPACE}/{bundle_name}/{service_name}",
            tag=bundle_version,
        )

    @property
    def display_tag(self) -> str:
        """Tag or digest as the engine resolves it."""
        if self.digest:
            return self.digest
        return self.tag or self.DEFAULT_TAG

    @property
    def archive_name(self) -> str:
        """Filename the image is saved under inside the bundle."""
        return f"{sanitize_filename(str(self))}.tar"

    def __str__(self) -> str:
        name = self.repository
        if self.tag:
            name = f"{name}:{self.tag}"
        if self.digest:
            name = f"{name}@{self.digest}"
        return name

    def __repr__(self) -> str:
        return f"ImageReference({self})"
