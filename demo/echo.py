"""Echo tool with argument completion."""

from mcp_server_kit import Parameter, TextContent, Tool, ToolAnnotations

GREETINGS = ["hello", "hi", "hey", "good morning", "good evening"]


class EchoTool(Tool):
    name = "echo"
    description = "Echoes back the provided message."
    parameters = (
        Parameter("message", "string", "The message to echo."),
        Parameter("repeat", "integer", "How many times to repeat it.", required=False),
    )
    annotations = ToolAnnotations(title="Echo", read_only_hint=True, idempotent_hint=True)

    def run(self, arguments):
        times = arguments.get("repeat") or 1
        if times < 1:
            raise ValueError("repeat must be at least 1")
        return [TextContent(" ".join([arguments["message"]] * times))]

    def complete(self, argument_name, value, arguments):
        if argument_name != "message":
            return super().complete(argument_name, value, arguments)
        values = [greeting for greeting in GREETINGS if greeting.startswith(str(value).lower())]
        return {"values": values, "total": len(values), "hasMore": False}
