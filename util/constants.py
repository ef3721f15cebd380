class InternalURIs:
    ROOT = "/"
    HEALTH = "/health"
    MCP = "/mcp"
    MCP_SUBPATH = MCP + "/{subpath:path}"


class ServiceNames:
    SERVICE = "serena-mcp"
    AUTH_REALM = "Serena MCP Server"
