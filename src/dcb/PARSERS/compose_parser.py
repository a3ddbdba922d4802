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
Parser and writer for bundle compose files.
"""
import yaml
from pydantic import ValidationError as ModelValidationError
from ..errors import ParseError, ValidationError
from ..MODELS.compose_manifest import ComposeManifest, is_valid_semver


def validate_bundle_metadata(manifest: ComposeManifest) -> None:
    """
    Checks the x-bundle block of a manifest.

    :param manifest: Parsed manifest.
    :raises ValidationError: If the block is missing, has no name or version, or the version is not semantic.
    """
    metadata = manifest.x_bundle
    if metadata is None:
        raise ValidationError("missing x-bundle entry in compose file")
    if not metadata.name:
        raise ValidationError("missing name in x-bundle")
    if not metadata.version:
        raise ValidationError("missing version in x-bundle")
    if not is_valid_semver(metadata.version):
        raise ValidationError(
            f"invalid version {metadata.version!r} in x-bundle, "
            "must be valid semantic versioning (e.g., 1.2.3)"
        )


class ComposeParser:
    """
    Parser for docker-compose.yml files with an x-bundle block.
    """
    def parse(self, compose_path: str) -> ComposeManifest:
        """
        Parses a compose file from a path.

        :param compose_path: Path to the compose file.
        :return: Parsed manifest.
        :raises ParseError: If the file cannot be read or is not a compose document.
        """
        try:
            with open(compose_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise ParseError(f"failed to read compose file {compose_path}: {e}") from e
        return self.parse_from_string(content)

    def parse_from_string(self, content: str) -> ComposeManifest:
        """
        Parses a compose file from a string.

        :param content: YAML content of the compose file.
        :return: Parsed manifest.
        :raises ParseError: If the content is not valid YAML or not a compose document.
        """
        try:
            data = yaml.safe_load(content)
        except (yaml.YAMLError, ValueError) as e:
            # ValueError covers scalars YAML recognises but cannot build, like 2024-02-30
            raise ParseError(f"failed to parse compose file: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ParseError("failed to parse compose file: top level must be a mapping")

        try:
            return ComposeManifest.model_validate(data)
        except ModelValidationError as e:
            raise ParseError(f"failed to parse compose file: {e}") from e

    def serialize(self, manifest: ComposeManifest) -> bytes:
        """
        Serializes a manifest to YAML. Services are written in name order.

        :param manifest: The manifest to write.
        :return: UTF-8 encoded YAML document.
        """
        text = yaml.safe_dump(
            manifest.to_compose_dict(),
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
        return text.encode('utf-8')

    def write(self, manifest: ComposeManifest, output_path: str) -> str:
        """
        Writes a manifest to a file.

        :param manifest: The manifest to write.
        :param output_path: Destination path.
        :return: The destination path.
        """
        with open(output_path, 'wb') as f:
            f.write(self.serialize(manifest))
        return output_path
