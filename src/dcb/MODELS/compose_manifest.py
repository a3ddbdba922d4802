"""
Models for a Docker Compose manifest carrying x-bundle metadata.
"""
import os
import re
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Compose fields that accept either a list of strings or a string-keyed mapping
StringList = List[str]
StringKeyedMap = Dict[str, Any]

SEMVER_PATTERN = re.compile(
    r'v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)(?:-[\w.-]+)?(?:\+[\w.-]+)?',
    re.ASCII,
)

DEFAULT_DOCKERFILE = "Dockerfile"


def is_valid_semver(version: str) -> bool:
    """
    Checks a version string against MAJOR.MINOR.PATCH[-pre][+build], with an optional leading 'v'.
    """
    return SEMVER_PATTERN.fullmatch(version) is not None


class BundleMetadata(BaseModel):
    """
    Name and version of the bundle, read from the x-bundle block.
    """
    model_config = ConfigDict(coerce_numbers_to_str=True, extra="allow")

    name: Optional[str] = None
    version: Optional[str] = None


class BuildConfig(BaseModel):
    """
    Long form of a service build section.
    """
    model_config = ConfigDict(coerce_numbers_to_str=True, extra="allow")

    context: str = "."
    dockerfile: Optional[str] = None
    args: Dict[str, Optional[str]] = {}

    @field_validator("args", mode="before")
    @classmethod
    def args_from_list(cls, value: Any) -> Any:
        # Compose accepts both ["KEY=VALUE", "KEY"] and {KEY: VALUE}
        if isinstance(value, list):
            args = {}
            for item in value:
                key, sep, val = str(item).partition("=")
                args[key] = val if sep else None
            return args
        if value is None:
            return {}
        return value

    def resolved_args(self, environ: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """
        Returns the build args to hand to the engine.
        Args declared without a value are taken from the environment, or dropped if unset there.

        :param environ: Environment used for valueless args. Defaults to os.environ.
        :return: Build args with concrete string values.
        """
        environ = os.environ if environ is None else environ
        resolved = {}
        for key, value in self.args.items():
            if value is None:
                value = environ.get(key)
                if value is None:
                    continue
            resolved[key] = value
        return resolved


class ServiceDefinition(BaseModel):
    """
    One service of the compose file. Fields the bundler does not model are kept as extras.
    """
    model_config = ConfigDict(coerce_numbers_to_str=True, extra="allow")

    image: Optional[str] = None
    build: Optional[Union[str, BuildConfig]] = None

    environment: Optional[Union[StringList, StringKeyedMap]] = None
    volumes: Optional[List[Union[str, Dict[str, Any]]]] = None
    ports: Optional[List[Union[str, Dict[str, Any]]]] = None
    networks: Optional[Union[StringList, StringKeyedMap]] = None
    depends_on: Optional[Union[StringList, StringKeyedMap]] = None

    command: Optional[Union[str, StringList]] = None
    entrypoint: Optional[Union[str, StringList]] = None
    restart: Optional[str] = None

    @field_validator("restart", mode="before")
    @classmethod
    def restart_no(cls, value: Any) -> Any:
        # YAML 1.1 loads an unquoted `restart: no` as False
        if value is False:
            return "no"
        return value

    def build_config(self) -> Optional[BuildConfig]:
        """
        Returns the build section in its long form, or None when the service is not built.
        """
        if self.build is None:
            return None
        if isinstance(self.build, str):
            return BuildConfig(context=self.build)
        return self.build


class ComposeManifest(BaseModel):
    """
    A parsed docker-compose.yml. Networks, volumes, configs, secrets and unknown
    top-level keys are carried through untouched.
    """
    model_config = ConfigDict(coerce_numbers_to_str=True, extra="allow", populate_by_name=True)

    version: Optional[str] = None
    services: Dict[str, ServiceDefinition] = Field(default_factory=dict)
    networks: Optional[Dict[str, Any]] = None
    volumes: Optional[Dict[str, Any]] = None
    configs: Optional[Dict[str, Any]] = None
    secrets: Optional[Dict[str, Any]] = None
    x_bundle: Optional[BundleMetadata] = Field(default=None, alias="x-bundle")

    @field_validator("services", mode="before")
    @classmethod
    def empty_services(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            # "web:" with no body is an empty service
            return {name: ({} if spec is None else spec) for name, spec in value.items()}
        return value

    def sorted_services(self) -> Iterator[Tuple[str, ServiceDefinition]]:
        """
        Iterates services by name so that bundles are reproducible.
        """
        for name in sorted(self.services):
            yield name, self.services[name]

    def apply_resolved_images(self, service_images: Dict[str, str]) -> None:
        """
        Points every resolved service at its final image and drops its build section.

        :param service_images: Service name to image reference.
        """
        for name, reference in service_images.items():
            service = self.services[name]
            service.image = reference
            service.build = None

    def to_compose_dict(self) -> Dict[str, Any]:
        """
        Converts the manifest back into plain compose data, omitting unset fields.
        """
        data = self.model_dump(by_alias=True, exclude_defaults=True, exclude={"services"})
        services = {
            name: service.model_dump(by_alias=True, exclude_defaults=True)
            for name, service in self.sorted_services()
        }
        ordered: Dict[str, Any] = {}
        if "x-bundle" in data:
            ordered["x-bundle"] = data.pop("x-bundle")
        if "version" in data:
            ordered["version"] = data.pop("version")
        ordered["services"] = services
        ordered.update(data)
        return ordered
