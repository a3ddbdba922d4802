"""
Per-run bookkeeping: which images were resolved, pulled and built.
"""
from dataclasses import dataclass, field
from typing import Dict, List

from ..REGISTRY.image_reference import ImageReference


@dataclass
class ResolvedImages:
    """
    Images produced by the resolver.

    archives maps each unique image reference to the tar filename it is saved under,
    services maps each resolved service to its image reference.
    """

    archives: Dict[str, str] = field(default_factory=dict)
    services: Dict[str, str] = field(default_factory=dict)

    def add(self, service_name: str, reference: str) -> None:
        """
        Record the image of a service. Identical references share one archive.

        Distinct references that sanitize to the same filename (foo/bar:1 and foo-bar:1)
        get a numeric suffix, so every image keeps its own archive.
        """
        self.services[service_name] = reference
        if reference in self.archives:
            return
        archive_name = ImageReference.parse(reference).archive_name
        taken = set(self.archives.values())
        if archive_name in taken:
            stem = archive_name[: -len(".tar")]
            counter = 2
            while f"{stem}-{counter}.tar" in taken:
                counter += 1
            archive_name = f"{stem}-{counter}.tar"
        self.archives[reference] = archive_name

    def __len__(self) -> int:
        return len(self.archives)


@dataclass
class RunState:
    """Images this run added to the engine and may remove again."""

    pulled: List[str] = field(default_factory=list)
    built: List[str] = field(default_factory=list)

    def record_pulled(self, reference: str) -> None:
        if reference not in self.pulled:
            self.pulled.append(reference)

    def record_built(self, reference: str) -> None:
        if reference not in self.built:
            self.built.append(reference)
