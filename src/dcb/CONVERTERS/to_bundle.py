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
Assembles the offline deployment bundle: images, compose file, loader scripts and README.
"""
import logging
import os
import tarfile
import tempfile
from typing import Optional
from jinja2 import Template
from ..errors import FilesystemError
from ..MANAGERS.image_exporter import ImageExporter
from ..MODELS.compose_manifest import ComposeManifest
from ..MODELS.resolved_images import ResolvedImages
from ..PARSERS.compose_parser import ComposeParser
from ..REGISTRY.image_reference import ImageReference
from ..UTILS.archive import create_tar_gz

logger = logging.getLogger(__name__)

WORKDIR_PREFIX = "docker-compose-bundle-"
IMAGES_DIR = "images"
COMPOSE_FILE = "docker-compose.yml"
LOAD_SCRIPT_SH = "load-images.sh"
LOAD_SCRIPT_BAT = "load-images.bat"
README_FILE = "README.md"

# Both loader scripts stop at the first image that fails to load
LOAD_IMAGES_SH = """#!/bin/bash
set -e

cd "$(dirname "$0")"

echo "Loading Docker images..."

# Load all images from the images directory
for image in images/*.tar; do
    if [ -f "$image" ]; then
        echo "Loading $image..."
        docker load -i "$image"
    fi
done

echo "All images loaded successfully!"
echo "You can now run: docker-compose up -d"
"""

LOAD_IMAGES_BAT = """@echo off
setlocal
cd /d "%~dp0"

echo Loading Docker images...

for %%f in (images\\*.tar) do (
    echo Loading %%f...
    docker load -i "%%f"
    if errorlevel 1 (
        echo Failed to load %%f
        exit /b 1
    )
)

echo All images loaded successfully!
echo You can now run: docker-compose up -d
"""

README_TEMPLATE = """# Docker Compose Bundle{% if name %}: {{ name }} {{ version }}{% endif %}

This bundle contains a Docker Compose stack with all required images for offline deployment.

## Contents

- docker-compose.yml - The Docker Compose configuration
- images/ - Directory containing all Docker images as tar files
- load-images.sh - Script to load all images (Linux/Mac)
- load-images.bat - Script to load all images (Windows)
{% if images %}
## Images

| Image | Tag | File |
|-------|-----|------|
{% for image in images -%}
| {{ image.repository }} | {{ image.tag }} | images/{{ image.file }} |
{% endfor -%}
{% endif %}
## Usage

1. Extract this bundle to your desired location
2. Load the Docker images:
   - On Linux/Mac: ./load-images.sh
   - On Windows: load-images.bat
3. Start the stack: docker-compose up -d

## Requirements

- Docker Engine installed
- Docker Compose installed

Note: No internet connection is required after extracting this bundle.
"""


class BundleAssembler:
    """
    Writes the bundle contents into a private working directory and archives it.
    """
    def __init__(self, exporter: ImageExporter, parser: Optional[ComposeParser] = None):
        """
        Initializes the assembler.

        :param exporter: Exporter used to save the resolved images.
        :param parser: Parser used to serialize the rewritten compose file.
        """
        self.exporter = exporter
        self.parser = parser or ComposeParser()
        self.readme_template = Template(README_TEMPLATE, keep_trailing_newline=True)

    def assemble(self, manifest: ComposeManifest, resolved: ResolvedImages, output_path: str) -> str:
        """
        Builds the bundle archive. The working directory is removed on every exit path.

        :param manifest: Manifest whose built services already point at their images.
        :param resolved: Images to include.
        :param output_path: Path of the .tar.gz bundle.
        :return: output_path.
        :raises SaveError: If an image cannot be exported.
        :raises FilesystemError: If the working directory or the archive cannot be written.
        """
        try:
            with tempfile.TemporaryDirectory(prefix=WORKDIR_PREFIX) as work_dir:
                logger.debug("Assembling bundle in %s", work_dir)
                self.populate(work_dir, manifest, resolved)
                self.write_archive(work_dir, output_path)
        except (OSError, tarfile.TarError) as e:
            raise FilesystemError(f"failed to assemble bundle: {e}") from e
        return output_path

    def populate(self, work_dir: str, manifest: ComposeManifest, resolved: ResolvedImages) -> None:
        """
        Writes images, compose file, loader scripts and README into work_dir.
        """
        images_dir = os.path.join(work_dir, IMAGES_DIR)
        os.makedirs(images_dir, mode=0o755, exist_ok=True)
        self.exporter.export_all(resolved, images_dir)

        manifest.apply_resolved_images(resolved.services)
        self.parser.write(manifest, os.path.join(work_dir, COMPOSE_FILE))

        self.write_load_scripts(work_dir)
        self.write_readme(work_dir, manifest, resolved)

    def write_load_scripts(self, work_dir: str) -> None:
        sh_path = os.path.join(work_dir, LOAD_SCRIPT_SH)
        with open(sh_path, 'w', newline='\n') as f:
            f.write(LOAD_IMAGES_SH)
        os.chmod(sh_path, 0o755)

        bat_path = os.path.join(work_dir, LOAD_SCRIPT_BAT)
        with open(bat_path, 'w', newline='\r\n') as f:
            f.write(LOAD_IMAGES_BAT)
        os.chmod(bat_path, 0o644)

    def write_readme(self, work_dir: str, manifest: ComposeManifest, resolved: ResolvedImages) -> None:
        images = []
        for reference, filename in resolved.archives.items():
            parsed = ImageReference.parse(reference)
            images.append({
                "repository": parsed.repository,
                "tag": parsed.display_tag,
                "file": filename,
            })

        metadata = manifest.x_bundle
        content = self.readme_template.render(
            name=metadata.name if metadata else None,
            version=metadata.version if metadata else None,
            images=images,
        )

        readme_path = os.path.join(work_dir, README_FILE)
        with open(readme_path, 'w', newline='\n') as f:
            f.write(content)
        os.chmod(readme_path, 0o644)

    def write_archive(self, work_dir: str, output_path: str) -> None:
        """
        Writes the gzip tar of work_dir. A partially written archive is removed.
        """
        parent = os.path.dirname(os.path.abspath(output_path))
        os.makedirs(parent, exist_ok=True)
        try:
            create_tar_gz(work_dir, output_path)
        except (OSError, tarfile.TarError):
            if os.path.exists(output_path):
                os.remove(output_path)
            raise
        logger.debug("Wrote bundle archive %s", output_path)
