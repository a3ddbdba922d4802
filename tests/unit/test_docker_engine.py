"""
Unit tests for the Docker engine adapter, against a mocked API client.
"""
import io
import tarfile
from unittest import mock
import pytest
from docker.errors import APIError, DockerException, ImageNotFound
from dcb.ENGINE import docker_engine
from dcb.ENGINE.docker_engine import DockerEngine, load_engine_environment
from dcb.errors import BuildError, EngineError, PullError, RemoveError, SaveError


@pytest.fixture
def api():
    return mock.Mock()


@pytest.fixture
def context_dir(tmp_path):
    (tmp_path / "Dockerfile").write_text("FROM alpine\n")
    (tmp_path / ".git").mkdir()
    (tmp_path / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
    return tmp_path


class TestBuild:
    """Tests for image builds."""

    def test_build_streams_context_and_output(self, api, context_dir):
        received = {}

        def build(fileobj, **kwargs):
            received["context"] = b"".join(fileobj)
            received.update(kwargs)
            return iter([{"stream": "Step 1/1 : FROM alpine\n"}, {"aux": {"ID": "sha256:1"}}, {"stream": "done\n"}])

        api.build.side_effect = build
        output = []

        DockerEngine(api).build_image(
            str(context_dir), "bundles/app/web:1.0.0",
            dockerfile="Dockerfile", build_args={"A": "1"}, on_output=output.append,
        )

        assert output == ["Step 1/1 : FROM alpine\n", "done\n"]
        assert received["custom_context"] is True
        assert received["tag"] == "bundles/app/web:1.0.0"
        assert received["buildargs"] == {"A": "1"}
        assert received["rm"] is True
        with tarfile.open(fileobj=io.BytesIO(received["context"])) as tar:
            assert tar.getnames() == ["Dockerfile"]

    def test_build_error_frame(self, api, context_dir):
        api.build.return_value = iter([
            {"stream": "Step 1/2 : RUN false\n"},
            {"error": "The command '/bin/sh -c false' returned a non-zero code: 1\n"},
        ])

        with pytest.raises(BuildError, match="build error: The command"):
            DockerEngine(api).build_image(str(context_dir), "app:1")

    def test_build_api_failure(self, api, context_dir):
        api.build.side_effect = APIError("Cannot locate specified Dockerfile: Dockerfile")

        with pytest.raises(BuildError, match="Cannot locate specified Dockerfile"):
            DockerEngine(api).build_image(str(context_dir), "app:1")


class TestPull:
    """Tests for image pulls and presence checks."""

    def test_pull(self, api):
        api.pull.return_value = iter([
            {"status": "Pulling from library/redis", "id": "7-alpine"},
            {"status": "Digest: sha256:abc"},
        ])
        output = []

        DockerEngine(api).pull_image("redis:7-alpine", on_output=output.append)

        api.pull.assert_called_once_with("redis:7-alpine", stream=True, decode=True)
        assert output == ["7-alpine: Pulling from library/redis\n", "Digest: sha256:abc\n"]

    def test_pull_error_frame(self, api):
        api.pull.return_value = iter([{"error": "manifest for ghost:1 not found"}])

        with pytest.raises(PullError, match="pull error: manifest for ghost:1 not found"):
            DockerEngine(api).pull_image("ghost:1")

    def test_image_exists(self, api):
        assert DockerEngine(api).image_exists("redis:7-alpine") is True
        api.inspect_image.assert_called_once_with("redis:7-alpine")

    def test_image_missing(self, api):
        api.inspect_image.side_effect = ImageNotFound("No such image: redis:7-alpine")
        assert DockerEngine(api).image_exists("redis:7-alpine") is False

    def test_inspect_failure(self, api):
        api.inspect_image.side_effect = APIError("server error")
        with pytest.raises(PullError):
            DockerEngine(api).image_exists("redis:7-alpine")


class TestSaveRemove:
    """Tests for image export and removal."""

    def test_save(self, api, tmp_path):
        api.get_image.return_value = iter([b"abc", b"def"])
        dest = tmp_path / "redis.tar"

        DockerEngine(api).save_image("redis:7-alpine", str(dest))

        assert dest.read_bytes() == b"abcdef"
        assert api.get_image.call_args[0] == ("redis:7-alpine",)

    def test_save_failure(self, api, tmp_path):
        api.get_image.side_effect = APIError("No such image")
        with pytest.raises(SaveError, match="redis:7-alpine"):
            DockerEngine(api).save_image("redis:7-alpine", str(tmp_path / "redis.tar"))

    def test_remove(self, api):
        DockerEngine(api).remove_image("redis:7-alpine")
        api.remove_image.assert_called_once_with("redis:7-alpine", force=False, noprune=False)

    def test_remove_failure(self, api):
        api.remove_image.side_effect = APIError("image is being used by running container")
        with pytest.raises(RemoveError):
            DockerEngine(api).remove_image("redis:7-alpine")


def test_connection_failure(monkeypatch):
    def from_env(**kwargs):
        raise DockerException("Error while fetching server API version")

    monkeypatch.setattr(docker_engine.docker, "from_env", from_env)
    with pytest.raises(EngineError, match="cannot connect"):
        DockerEngine()


def test_engine_environment_from_dotenv(tmp_path):
    (tmp_path / ".env").write_text(
        "DOCKER_HOST=tcp://build-host:2375\nDOCKER_TLS_VERIFY=1\nAPP_PORT=8080\n"
    )

    environment = load_engine_environment(str(tmp_path), environ={"DOCKER_TLS_VERIFY": "0", "PATH": "/bin"})

    assert environment["DOCKER_HOST"] == "tcp://build-host:2375"
    assert environment["DOCKER_TLS_VERIFY"] == "0"
    assert environment["PATH"] == "/bin"
    assert "APP_PORT" not in environment


def test_engine_environment_without_dotenv(tmp_path):
    assert load_engine_environment(str(tmp_path), environ={"PATH": "/bin"}) == {"PATH": "/bin"}
