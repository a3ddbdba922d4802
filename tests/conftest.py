"""
Shared fixtures: an in-memory container engine and a sample bundle project.
"""
import logging
import pytest
from dcb.ENGINE.base import ContainerEngine
from dcb.errors import BuildError, PullError, RemoveError, SaveError

EXAMPLE_COMPOSE = """x-bundle:
  name: example
  version: 0.0.1
services:
  web:
    build:
      context: ./web
      dockerfile: Dockerfile
    ports:
      - "8080:80"
    environment:
      - NODE_ENV=production
    depends_on:
      - redis
      - postgres

  redis:
    image: redis:7-alpine
    volumes:
      - redis-data:/data

  postgres:
    image: postgres:15
    environment:
      POSTGRES_DB: myapp
      POSTGRES_USER: myuser
      POSTGRES_PASSWORD: mypassword
    volumes:
      - postgres-data:/var/lib/postgresql/data

volumes:
  redis-data:
  postgres-data:
"""


class FakeEngine(ContainerEngine):
    """
    Engine double that keeps images in a set and records every call.
    """
    def __init__(self, local_images=(), fail_build=(), fail_pull=(), fail_save=(), fail_remove=()):
        self.local_images = set(local_images)
        self.fail_build = set(fail_build)
        self.fail_pull = set(fail_pull)
        self.fail_save = set(fail_save)
        self.fail_remove = set(fail_remove)
        self.calls = []
        self.builds = {}
        self.removed = []

    def build_image(self, context_dir, tag, dockerfile="Dockerfile", build_args=None, on_output=None):
        self.calls.append(("build", tag))
        self.builds[tag] = {
            "context": context_dir,
            "dockerfile": dockerfile,
            "build_args": dict(build_args or {}),
        }
        if tag in self.fail_build:
            raise BuildError("build error: The command '/bin/sh -c exit 1' returned a non-zero code: 1")
        if on_output:
            on_output("Step 1/1 : FROM scratch\n")
            on_output(f"Successfully tagged {tag}\n")
        self.local_images.add(tag)

    def pull_image(self, reference, on_output=None):
        self.calls.append(("pull", reference))
        if reference in self.fail_pull:
            raise PullError(f"pull error: manifest for {reference} not found")
        if on_output:
            on_output("Pull complete\n")
        self.local_images.add(reference)

    def image_exists(self, reference):
        self.calls.append(("inspect", reference))
        return reference in self.local_images

    def save_image(self, reference, dest_path):
        self.calls.append(("save", reference))
        if reference in self.fail_save:
            with open(dest_path, "wb") as f:
                f.write(b"partial")
            raise SaveError(f"cannot save image {reference}: unexpected EOF")
        with open(dest_path, "wb") as f:
            f.write(f"image:{reference}".encode())

    def remove_image(self, reference):
        self.calls.append(("remove", reference))
        if reference in self.fail_remove:
            raise RemoveError(f"cannot remove image {reference}: conflict")
        self.local_images.discard(reference)
        self.removed.append(reference)

    def called(self, operation):
        return [ref for op, ref in self.calls if op == operation]


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    # The CLI binds its handler to the stream of the invocation
    logging.getLogger("dcb").handlers.clear()


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def make_engine():
    """
    Returns the FakeEngine class, for tests that need local images or failures.
    """
    return FakeEngine


@pytest.fixture
def example_project(tmp_path):
    """
    Writes the example compose project and returns the compose file path.
    """
    project = tmp_path / "project"
    web = project / "web"
    web.mkdir(parents=True)
    (web / "Dockerfile").write_text("FROM node:20-alpine\nCOPY server.js .\nCMD [\"node\", \"server.js\"]\n")
    (web / "server.js").write_text("require('http').createServer((q, s) => s.end('ok')).listen(80);\n")

    compose_file = project / "docker-compose.yml"
    compose_file.write_text(EXAMPLE_COMPOSE)
    return str(compose_file)

