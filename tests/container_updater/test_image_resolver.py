"""
Tests for the image resolver.
"""

import json

import docker
import pytest
from unittest.mock import Mock, patch

from docker.credentials.errors import StoreError
from docker.errors import DockerException, ImageNotFound

from container_updater.engine import DockerEngineClient
from container_updater.errors import EngineError, PullError
from container_updater.image_resolver import (
    DockerConfigCredentials,
    ImageResolver,
    registry_host,
)


@pytest.mark.parametrize(
    "ref,expected",
    [
        ("ghcr.io/org/app:1.0", "ghcr.io"),
        ("registry.local:5000/app:1.0", "registry.local:5000"),
        ("localhost:5000/app", "localhost:5000"),
        ("library/nginx:latest", None),
        ("nginx:latest", None),
        ("nginx", None),
        ("org/app@sha256:abc", None),
    ],
)
def test_registry_host(ref, expected):
    assert registry_host(ref) == expected


class TestImageResolver:
    """Test ensure_image."""

    @pytest.fixture
    def credentials(self):
        provider = Mock()
        provider.get = Mock(return_value={"username": "ci", "password": "s3cret"})
        return provider

    def test_present_image_is_not_pulled(self, fake_engine, credentials):
        """Local image short-circuits with no network I/O."""
        resolver = ImageResolver(fake_engine, credentials)

        resolver.ensure_image("app:1.0")

        assert fake_engine.operations() == ["image_exists"]
        credentials.get.assert_not_called()

    def test_private_registry_pull_uses_credentials(self, fake_engine, credentials):
        resolver = ImageResolver(fake_engine, credentials)

        resolver.ensure_image("ghcr.io/org/app:2.0")

        credentials.get.assert_called_once_with("ghcr.io")
        assert fake_engine.pull_auth == [{"username": "ci", "password": "s3cret"}]
        assert "ghcr.io/org/app:2.0" in fake_engine.images

    def test_default_registry_skips_credential_lookup(self, fake_engine, credentials):
        resolver = ImageResolver(fake_engine, credentials)

        resolver.ensure_image("library/nginx:1.25")

        credentials.get.assert_not_called()
        assert fake_engine.pull_auth == [None]

    def test_no_provider_pulls_unauthenticated(self, fake_engine):
        resolver = ImageResolver(fake_engine)

        resolver.ensure_image("ghcr.io/org/app:2.0")

        assert fake_engine.pull_auth == [None]

    @pytest.mark.parametrize(
        "error",
        [StoreError("helper not found"), OSError("permission denied"), ValueError("bad json")],
    )
    def test_credential_failure_falls_back_to_anonymous_pull(
        self, fake_engine, credentials, error
    ):
        """Credential errors are logged, not fatal."""
        credentials.get.side_effect = error
        resolver = ImageResolver(fake_engine, credentials)

        resolver.ensure_image("ghcr.io/org/app:2.0")

        assert fake_engine.pull_auth == [None]
        assert "ghcr.io/org/app:2.0" in fake_engine.images

    def test_pull_failure_raises_pull_error(self, fake_engine):
        fake_engine.fail_on("pull_image", EngineError("pull access denied"))
        resolver = ImageResolver(fake_engine)

        with pytest.raises(PullError) as exc_info:
            resolver.ensure_image("ghcr.io/org/app:2.0")

        assert exc_info.value.image == "ghcr.io/org/app:2.0"
        assert "pull access denied" in str(exc_info.value)

    def test_presence_check_failure_raises_pull_error(self, fake_engine):
        fake_engine.fail_on("image_exists", EngineError("daemon unreachable"))
        resolver = ImageResolver(fake_engine)

        with pytest.raises(PullError):
            resolver.ensure_image("app:2.0")

        assert "pull_image" not in fake_engine.operations()


class TestDockerConfigCredentials:
    """Test credentials from the Docker client config."""

    def test_resolves_registry_auth(self):
        auth = Mock()
        auth.resolve_authconfig = Mock(return_value={"username": "u", "password": "p"})

        with patch(
            "container_updater.image_resolver.docker.auth.load_config", return_value=auth
        ) as load_config:
            provider = DockerConfigCredentials(config_path="/tmp/config.json")
            result = provider.get("ghcr.io")

        load_config.assert_called_once_with(config_path="/tmp/config.json")
        auth.resolve_authconfig.assert_called_once_with("ghcr.io")
        assert result == {"username": "u", "password": "p"}

    def test_returns_none_without_entry(self):
        auth = Mock()
        auth.resolve_authconfig = Mock(return_value=None)

        with patch("container_updater.image_resolver.docker.auth.load_config", return_value=auth):
            assert DockerConfigCredentials().get("registry.local:5000") is None


class TestResolverWithApiClient:
    """Credential fail-open through DockerConfigCredentials and a real docker.APIClient."""

    @pytest.fixture
    def broken_store_config(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"credsStore": "updater-test-missing-helper"}))
        return str(path)

    @pytest.fixture
    def engine(self):
        client = docker.APIClient(base_url="tcp://127.0.0.1:2375", version="1.41")
        with patch.object(
            client, "inspect_image", side_effect=ImageNotFound("no such image")
        ), patch.object(client, "_post", return_value=Mock()) as post, patch.object(
            client, "_raise_for_status"
        ), patch.object(
            client, "_stream_helper", return_value=iter([{"status": "Downloaded newer image"}])
        ):
            yield DockerEngineClient(Mock(api=client)), post

    @pytest.mark.parametrize("ref", ["registry.example.com/app:2.0", "library/nginx:1.25"])
    def test_failed_lookup_pulls_unauthenticated(self, engine, broken_store_config, ref):
        docker_engine, post = engine
        resolver = ImageResolver(docker_engine, DockerConfigCredentials(broken_store_config))

        with patch(
            "docker.auth.get_config_header",
            side_effect=DockerException("Credentials store error"),
        ) as sdk_lookup:
            resolver.ensure_image(ref)

        sdk_lookup.assert_not_called()
        post.assert_called_once()
