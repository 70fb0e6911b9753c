#!/usr/bin/env python3
"""
Compile Arguments MCP Server

Serves resolved C/C++ compiler arguments for project files over MCP, so a
tooling front end can ask how any file (including headers that are never
compiled directly) should be parsed.
"""

import asyncio
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from mcp.server import Server
from mcp.types import TextContent, Tool

from . import diagnostics
from .path_matcher import PathMatcher
from .path_utils import is_absolute
from .project import ProjectHolder

# Set by set_project_directory, or at startup from CPP_PROJECT_ROOT.
holder: Optional[ProjectHolder] = None

server = Server("compile-args")


def _text(payload: Any) -> List[TextContent]:
    if isinstance(payload, str):
        return [TextContent(type="text", text=payload)]
    return [TextContent(type="text", text=json.dumps(payload, indent=2))]


def _error(message: str) -> List[TextContent]:
    return _text(f"Error: {message}")


@server.list_tools()
async def list_tools() -> List[Tool]:
    return [
        Tool(
            name="set_project_directory",
            description="Load a C/C++ project. Uses <project>/compile_commands.json when it can be ingested, otherwise lists every .cc/.cpp/.c file and applies the flags in <project>/clang_args. Must be called before the other tools unless the server was started with CPP_PROJECT_ROOT.",
            inputSchema={
                "type": "object",
                "properties": {
                    "project_path": {
                        "type": "string",
                        "description": "Absolute path to the project root",
                    },
                    "config_file": {
                        "type": "string",
                        "description": "Optional absolute path to a .compile-args-config.json file",
                    },
                },
                "required": ["project_path"],
            },
        ),
        Tool(
            name="get_compile_args",
            description="Get the cleaned compiler arguments for a file. Files without their own compilation database entry (headers, new files) get the arguments of the closest known file and are reported with is_inferred=true.",
            inputSchema={
                "type": "object",
                "properties": {
                    "file_path": {
                        "type": "string",
                        "description": "Absolute path, or path relative to the project root",
                    }
                },
                "required": ["file_path"],
            },
        ),
        Tool(
            name="get_include_directories",
            description="Get the project-wide include search directories: 'quote' for #include \"x\" (-iquote) and 'angle' for #include <x> (-I, -isystem).",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="list_project_files",
            description="List the files to index, in database order, with their entry index. Optional glob patterns filter the list; include patterns override exclude patterns. Defaults come from index_whitelist/index_blacklist in the project config.",
            inputSchema={
                "type": "object",
                "properties": {
                    "include": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Glob patterns that are always listed",
                    },
                    "exclude": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Glob patterns that are skipped",
                    },
                },
            },
        ),
        Tool(
            name="refresh_project",
            description="Reload the project if compile_commands.json was added, removed or modified since the last load. Set force=true to reload unconditionally.",
            inputSchema={
                "type": "object",
                "properties": {
                    "force": {"type": "boolean", "default": False},
                },
            },
        ),
        Tool(
            name="get_project_stats",
            description="Get entry counts, include directory counts and whether the compilation database was used.",
            inputSchema={"type": "object", "properties": {}},
        ),
    ]


def _resolve_file(file_path: str) -> str:
    if not is_absolute(file_path):
        file_path = holder.project_directory + file_path
    return holder.normalizer(file_path)


def _string_list(value: Any, name: str) -> List[str]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"'{name}' must be an array of strings")
    return value


@server.call_tool()
async def call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
    global holder
    arguments = arguments or {}

    try:
        if name == "set_project_directory":
            project_path = arguments.get("project_path")
            config_file = arguments.get("config_file")

            if not isinstance(project_path, str) or not project_path.strip():
                return _error("'project_path' must be a non-empty string")
            project_path = project_path.strip()
            if not os.path.isabs(project_path):
                return _error(f"'{project_path}' is not an absolute path")
            if not os.path.isdir(project_path):
                return _error(f"Directory '{project_path}' does not exist")
            if config_file is not None:
                if not isinstance(config_file, str) or not os.path.isabs(config_file):
                    return _error("'config_file' must be an absolute path")
                if not os.path.isfile(config_file):
                    return _error(f"Config file '{config_file}' does not exist")
                config_file = Path(config_file)

            # Loading is blocking; keep the event loop responsive.
            holder = await asyncio.to_thread(ProjectHolder, project_path, None, config_file)
            return _text(holder.project.get_stats())

        if holder is None:
            return _error("No project loaded. Call set_project_directory first.")

        if name == "get_compile_args":
            file_path = arguments.get("file_path")
            if not isinstance(file_path, str) or not file_path.strip():
                return _error("'file_path' must be a non-empty string")
            entry = holder.project.find(_resolve_file(file_path.strip()))
            return _text(entry.to_dict())

        elif name == "get_include_directories":
            project = holder.project
            return _text(
                {
                    "quote": project.quote_include_directories,
                    "angle": project.angle_include_directories,
                }
            )

        elif name == "list_project_files":
            config = holder.config
            include = arguments.get("include", config.get_index_whitelist())
            exclude = arguments.get("exclude", config.get_index_blacklist())
            matcher = PathMatcher(
                _string_list(include, "include"), _string_list(exclude, "exclude")
            )

            files = []
            holder.project.for_each_filtered(
                matcher,
                lambda index, entry: files.append({"index": index, "filename": entry.filename}),
                log_skipped=config.get_log_skipped_paths(),
            )
            return _text({"count": len(files), "files": files})

        elif name == "refresh_project":
            if arguments.get("force", False):
                await asyncio.to_thread(holder.reload)
                reloaded = True
            else:
                reloaded = await asyncio.to_thread(holder.refresh_if_needed)
            return _text({"reloaded": reloaded, "stats": holder.project.get_stats()})

        elif name == "get_project_stats":
            return _text(holder.project.get_stats())

        else:
            return _text(f"Unknown tool: {name}")

    except Exception as e:
        return _error(str(e))


async def main():
    """Main entry point for the MCP server."""
    import argparse

    parser = argparse.ArgumentParser(description="Compile Arguments MCP Server")
    parser.add_argument(
        "--project-root",
        type=str,
        default=os.environ.get("CPP_PROJECT_ROOT"),
        help="Project to load at startup (default: $CPP_PROJECT_ROOT)",
    )
    args = parser.parse_args()

    global holder
    if args.project_root:
        diagnostics.info(f"Loading project at startup: {args.project_root}")
        try:
            holder = ProjectHolder(args.project_root)
        except Exception as e:
            diagnostics.error(f"Failed to load project {args.project_root}: {e}")
            holder = None

    from mcp.server.stdio import stdio_server

    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
