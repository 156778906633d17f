"""MCP-compatible tool schema for AI agents."""

from __future__ import annotations

from ._version import __version__

_FILTER_PROPERTY = {
    "type": "array",
    "items": {"type": "string", "enum": ["dirty", "tracking"]},
    "description": "Only include repositories matching at least one filter (--filter, repeatable)",
}

_DIRECTORY_PROPERTY = {
    "type": "string",
    "description": "Scan this directory instead of using the registry (global --directory option)",
}

_OPERATION_OUTPUT = {
    "type": "object",
    "description": "Command output is streamed per repository; exit code is 1 if any repository failed",
    "properties": {
        "exit_code": {"type": "integer"},
    },
}


def _passthrough_tool(name: str, description: str) -> dict:
    return {
        "name": name,
        "description": description,
        "inputSchema": {
            "type": "object",
            "properties": {
                "filter": _FILTER_PROPERTY,
                "directory": _DIRECTORY_PROPERTY,
                "args": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": f"Arguments passed verbatim to `git {name}` (place after `--` if they start with --filter)",
                },
            },
            "required": [],
        },
        "outputSchema": _OPERATION_OUTPUT,
    }


def get_tool_schema() -> dict:
    """Generate MCP-compatible tool schema for AI agents."""
    return {
        "name": "multigit",
        "version": __version__,
        "description": "Run git operations across many repositories at once. Repositories are registered individually or as directories that are scanned for repositories; every operation visits them one at a time in path order and reports failures at the end without stopping early.",
        "usage": "multigit [--config FILE] [--directory DIR] <command> [options] [args]",
        "tools": [
            {
                "name": "register",
                "description": "Register git repositories, or directories that contain repositories. A path that is a repository root at registration time is stored as a repository, anything else as a directory to scan.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "paths": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "Paths to register (default: current directory)",
                        },
                    },
                    "required": [],
                },
            },
            {
                "name": "unregister",
                "description": "Remove repositories or directories from the registry.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "paths": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "Paths to unregister (default: current directory)",
                        },
                        "all": {
                            "type": "boolean",
                            "description": "Unregister everything",
                            "default": False,
                        },
                    },
                    "required": [],
                },
            },
            {
                "name": "list",
                "description": "List managed repositories, optionally with state, branch, ahead/behind and stash information.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "filter": _FILTER_PROPERTY,
                        "directory": _DIRECTORY_PROPERTY,
                        "detailed": {
                            "type": "boolean",
                            "description": "Show a table with repository state",
                            "default": False,
                        },
                        "json": {
                            "type": "boolean",
                            "description": "Output as JSON for machine parsing",
                            "default": False,
                        },
                    },
                    "required": [],
                },
                "outputSchema": {
                    "type": "object",
                    "properties": {
                        "repositories": {"type": "array"},
                        "total": {"type": "integer"},
                    },
                },
            },
            {
                "name": "status",
                "description": "Show change flags ([new], [modified], [wt-new], [conflicted], ...) for every repository with uncommitted changes.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "filter": _FILTER_PROPERTY,
                        "directory": _DIRECTORY_PROPERTY,
                        "json": {
                            "type": "boolean",
                            "description": "Output as JSON for machine parsing",
                            "default": False,
                        },
                    },
                    "required": [],
                },
                "outputSchema": {
                    "type": "object",
                    "properties": {
                        "repositories": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": {
                                    "path": {"type": "string"},
                                    "name": {"type": "string"},
                                    "flags": {"type": "array", "items": {"type": "string"}},
                                    "success": {"type": "boolean"},
                                    "error": {"type": "string"},
                                },
                            },
                        },
                        "total": {"type": "integer"},
                        "errors": {"type": "integer"},
                    },
                },
            },
            _passthrough_tool("add", "Stage files in every selected repository."),
            _passthrough_tool("commit", "Commit in every selected repository."),
            _passthrough_tool("push", "Push every selected repository."),
            _passthrough_tool("fetch", "Fetch every selected repository."),
            _passthrough_tool(
                "pull",
                "Pull every selected repository whose current branch tracks a remote branch; others are skipped.",
            ),
            {
                "name": "exec",
                "description": "Run an arbitrary command in every selected repository.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "filter": _FILTER_PROPERTY,
                        "directory": _DIRECTORY_PROPERTY,
                        "command": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "Program and arguments (required)",
                        },
                    },
                    "required": ["command"],
                },
                "outputSchema": _OPERATION_OUTPUT,
            },
        ],
    }
