"""Greeting resources."""

from mcp_server_kit import Resource


class GreetingResource(Resource):
    uri = "greeting://{name}"
    description = "A personal greeting"

    def __init__(self):
        super().__init__(name="greeting", mime_type="text/plain")

    def read(self, parameters):
        return self.text(f"Hello, {parameters['name']}!", parameters=parameters)


class ReadmeResource(Resource):
    uri = "demo://readme"
    description = "About this demo server"

    def __init__(self):
        super().__init__(name="readme", mime_type="text/markdown")

    def read(self, parameters):
        return self.text("# Demo\n\nCall the `echo` tool or read `greeting://{name}`.")
