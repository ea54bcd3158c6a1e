"""Tests for resources/list and resources/read handlers."""

import base64

import pytest
from conftest import ReadmeResource, UserResource

from mcp_server_kit.capabilities.resources import (
    Resource,
    ResourcesCapability,
    match_uri_template,
    resolve_uri_template,
)
from mcp_server_kit.content import Annotations
from mcp_server_kit.protocol.jsonrpc import INTERNAL_ERROR, INVALID_PARAMS, JsonRpcMessage


class BrokenResource(Resource):
    uri = "test://broken"

    def read(self, parameters):
        raise OSError("disk on fire")


class IconResource(Resource):
    uri = "test://icon"

    def read(self, parameters):
        return self.blob(b"\x00\x01", "image/png")


class AnyFileResource(Resource):
    uri = "test://files/{name}"

    def read(self, parameters):
        return self.text(f"any {parameters['name']}", parameters=parameters)


class SpecialFileResource(Resource):
    uri = "test://files/{fileName}"

    def read(self, parameters):
        return self.text(f"special {parameters['fileName']}", parameters=parameters)


def read(capability: ResourcesCapability, uri) -> JsonRpcMessage:
    return capability.handle(JsonRpcMessage.request(1, "resources/read", {"uri": uri}))


@pytest.fixture
def capability() -> ResourcesCapability:
    capability = ResourcesCapability()
    capability.add_resource(UserResource())
    capability.add_resource(ReadmeResource())
    return capability


class TestUriTemplates:
    """Tests for URI template matching."""

    def test_matches_placeholder(self):
        """Should bind a placeholder to one path segment."""
        assert match_uri_template("test://users/{userId}", "test://users/123") == {
            "userId": "123"
        }

    def test_placeholder_does_not_cross_segments(self):
        """Should not let a placeholder match a slash."""
        assert match_uri_template("test://users/{userId}", "test://users/1/2") is None

    def test_literal_must_match_exactly(self):
        """Should treat regex characters in literals literally."""
        assert match_uri_template("test://a.b", "test://a.b") == {}
        assert match_uri_template("test://a.b", "test://axb") is None

    def test_requires_full_match(self):
        """Should not match a prefix of the URI."""
        assert match_uri_template("test://readme", "test://readme/extra") is None

    def test_resolves_template(self):
        """Should substitute parameter values."""
        assert resolve_uri_template("test://users/{userId}", {"userId": "42"}) == "test://users/42"


class TestResourcesList:
    """Tests for resources/list."""

    def test_lists_registered_resources(self, capability: ResourcesCapability):
        """Should list resources in registration order."""
        response = capability.handle(JsonRpcMessage.request(1, "resources/list"))

        uris = [r["uri"] for r in response.result["resources"]]
        assert uris == ["test://users/{userId}", "test://readme"]

    def test_resource_descriptor(self):
        """Should include the optional descriptor fields that are set."""

        class Described(Resource):
            uri = "test://described"
            description = "Described resource"

            def read(self, parameters):
                return self.text("x")

        resource = Described(name="described", mime_type="text/plain", size=1,
                             annotations=Annotations(priority=0.2))

        assert resource.to_dict() == {
            "uri": "test://described",
            "name": "described",
            "description": "Described resource",
            "mimeType": "text/plain",
            "size": 1,
            "annotations": {"priority": 0.2},
        }

    def test_describes_capability(self, capability: ResourcesCapability):
        """Should advertise the resources capability."""
        assert capability.describe() == {"resources": {"subscribe": False, "listChanged": False}}

    def test_requires_uri(self):
        """Should refuse a resource class without a uri."""

        class Nameless(Resource):
            def read(self, parameters):
                return self.text("x")

        with pytest.raises(ValueError):
            Nameless()


class TestResourcesRead:
    """Tests for resources/read."""

    def test_reads_template_resource(self, capability: ResourcesCapability):
        """Should bind template parameters and answer with the requested uri."""
        response = read(capability, "test://users/123")

        assert response.result == {
            "contents": [{"uri": "test://users/123", "mimeType": "text/plain", "text": "user 123"}]
        }

    def test_reads_static_resource(self, capability: ResourcesCapability):
        """Should read a resource registered without placeholders."""
        contents = read(capability, "test://readme").result["contents"][0]

        assert contents["text"] == "# Readme"
        assert contents["mimeType"] == "text/markdown"

    def test_reads_blob_resource(self):
        """Should base64-encode blob contents."""
        capability = ResourcesCapability()
        capability.add_resource(IconResource())

        contents = read(capability, "test://icon").result["contents"][0]

        assert contents == {
            "uri": "test://icon",
            "mimeType": "image/png",
            "blob": base64.b64encode(b"\x00\x01").decode("ascii"),
        }

    def test_unknown_uri(self, capability: ResourcesCapability):
        """Should answer INVALID_PARAMS for an unknown uri."""
        response = read(capability, "test://nothing")

        assert response.error_code == INVALID_PARAMS
        assert "not found" in response.error["message"]

    @pytest.mark.parametrize("uri", [None, "", 5])
    def test_missing_uri(self, capability: ResourcesCapability, uri):
        """Should answer INVALID_PARAMS when uri is missing or not a string."""
        response = read(capability, uri)

        assert response.error_code == INVALID_PARAMS
        assert response.error["message"] == "Missing uri parameter"

    def test_read_failure(self):
        """Should turn a read exception into INTERNAL_ERROR."""
        capability = ResourcesCapability()
        capability.add_resource(BrokenResource())

        response = read(capability, "test://broken")

        assert response.error_code == INTERNAL_ERROR
        assert "disk on fire" in response.error["message"]

    def test_first_registered_template_wins(self):
        """Should dispatch to the earliest registered matching template."""
        capability = ResourcesCapability()
        capability.add_resource(AnyFileResource())
        capability.add_resource(SpecialFileResource())

        contents = read(capability, "test://files/a.txt").result["contents"][0]

        assert contents["text"] == "any a.txt"

    def test_ignores_notifications(self, capability: ResourcesCapability):
        """Should never answer a notification."""
        assert capability.handle(JsonRpcMessage.notification("resources/list")) is None
