from __future__ import annotations


class KnowledgeFusionError(Exception):
    pass


class ToolConnectionError(KnowledgeFusionError):
    def __init__(
        self,
        server_name: str,
        cause: BaseException | str | None = None,
    ) -> None:
        self.server_name = server_name
        self.cause = cause
        message = f"Could not connect to {server_name}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class ToolInvocationError(KnowledgeFusionError):
    def __init__(
        self,
        server_name: str,
        tool_name: str,
        cause: BaseException | str | None = None,
    ) -> None:
        self.server_name = server_name
        self.tool_name = tool_name
        self.cause = cause
        message = f"Tool call failed ({server_name}/{tool_name})"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class SearchError(KnowledgeFusionError):
    """Raised when a primary retrieval path cannot produce results.

    ``operation`` is one of ``search``, ``hybrid_search`` or ``code_search``.
    """

    def __init__(
        self,
        operation: str,
        query: str,
        cause: BaseException | str | None = None,
    ) -> None:
        self.operation = operation
        self.query = query
        self.cause = cause
        message = f"{operation} failed for query {query!r}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
