"""Built-in workspace tools for the autonomous agent."""

from __future__ import annotations

import asyncio
import fnmatch
import os
from pathlib import Path
from typing import TYPE_CHECKING, Awaitable, Callable

from ..core.state import truncate_for_display
from ..rag.retrieval import retrieve
from .tools import FunctionTool, ToolRegistry, tool

if TYPE_CHECKING:
    from ..core.state import PipelineState

MAX_READ_CHARS = 10_000
MAX_COMMAND_OUTPUT = 5_000
MAX_SEARCH_RESULTS = 20
MAX_SEARCH_FILES = 100


@tool
async def read_file(path: str) -> str:
    """Read the contents of a file.

    Args:
        path: Path of the file to read
    """
    target = Path(path)
    if not target.is_file():
        return f"Error: File not found: {path}"
    content = await asyncio.to_thread(target.read_text, encoding="utf-8", errors="replace")
    if len(content) > MAX_READ_CHARS:
        content = content[:MAX_READ_CHARS] + f"\n\n... [truncated, {len(content)} total chars]"
    return content


def _write(target: Path, content: str) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")


@tool
async def write_file(path: str, content: str) -> str:
    """Create or overwrite a file with new content.

    Args:
        path: Path of the file to write
        content: Full file contents
    """
    if not path:
        return "Error: Required args: path, content"
    await asyncio.to_thread(_write, Path(path), content)
    return f"Successfully wrote {len(content)} chars to {path}"


@tool
async def edit_file(path: str, old: str, new: str) -> str:
    """Replace specific text in a file. Include enough context to identify the location.

    Args:
        path: Path of the file to edit
        old: Exact text to replace
        new: Replacement text
    """
    target = Path(path)
    if not target.is_file():
        return f"Error: File not found: {path}"
    content = await asyncio.to_thread(target.read_text, encoding="utf-8")
    if old not in content:
        return "Error: Old text not found in file. Make sure to include enough context."
    await asyncio.to_thread(_write, target, content.replace(old, new))
    return f"Successfully edited {path}"


def _list_dir(target: Path) -> list[str]:
    entries = sorted(target.iterdir(), key=lambda p: p.name)
    dirs = [p.name + "/" for p in entries if p.is_dir()][:50]
    files = [p.name for p in entries if p.is_file()][:100]
    return dirs + files


@tool
async def list_dir(path: str = ".") -> str:
    """List contents of a directory.

    Args:
        path: Directory to list
    """
    target = Path(path or ".")
    if not target.is_dir():
        return f"Error: Directory not found: {path}"
    return "\n".join(await asyncio.to_thread(_list_dir, target))


def _search(query: str, root: Path, pattern: str) -> list[str]:
    needle = query.lower()
    results: list[str] = []
    scanned = 0
    for dirpath, _, filenames in os.walk(root):
        for filename in sorted(fnmatch.filter(filenames, pattern)):
            scanned += 1
            if scanned > MAX_SEARCH_FILES:
                return results
            file_path = Path(dirpath) / filename
            try:
                lines = file_path.read_text(encoding="utf-8", errors="replace").splitlines()
            except OSError:
                continue
            for number, line in enumerate(lines, start=1):
                if needle in line.lower():
                    results.append(f"{file_path}:{number}: {line.strip()}")
                    if len(results) >= MAX_SEARCH_RESULTS:
                        return results
    return results


@tool
async def search_files(query: str, path: str = ".", pattern: str = "*.py") -> str:
    """Search for text across files.

    Args:
        query: Case-insensitive text to find
        path: Directory to search recursively
        pattern: Glob for file names
    """
    if not query:
        return "Error: Required arg: query"
    results = await asyncio.to_thread(_search, query, Path(path or "."), pattern or "*")
    return "\n".join(results) if results else "No matches found"


@tool
async def think(thought: str = "") -> str:
    """Record your thoughts or planning without any external action.

    Args:
        thought: The thought to record
    """
    return f"Thought recorded: {thought}"


@tool
async def run_command(command: str) -> str:
    """Execute a shell command and return its output and exit code.

    Args:
        command: Command line to run
    """
    if not command:
        return "Error: Required arg: command"
    process = await asyncio.create_subprocess_shell(
        command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await process.communicate()
    except asyncio.CancelledError:
        process.kill()
        raise

    parts = []
    if stdout:
        parts.append(stdout.decode(errors="replace"))
    if stderr:
        parts.append(f"STDERR: {stderr.decode(errors='replace')}")
    parts.append(f"Exit code: {process.returncode}")
    text = "\n".join(parts)
    if len(text) > MAX_COMMAND_OUTPUT:
        text = text[:MAX_COMMAND_OUTPUT] + "\n... [truncated]"
    return text


def make_vector_search(state: PipelineState) -> FunctionTool:
    """Bind a ``vector_search`` tool to the store and embedder of ``state``."""

    @tool(name="vector_search")
    async def vector_search(query: str) -> str:
        """Search the vector store for similar documents.

        Args:
            query: Semantic search query
        """
        if not query:
            return "Error: Required arg: query"
        if state.branch.store is None or state.embedder is None:
            return "Error: No vector store available."
        texts = await retrieve(state.branch.store, state.embedder, query, 5)
        if not texts:
            return "No similar documents found"
        return "".join(
            f"[{i}] {truncate_for_display(text, 500)}\n---\n" for i, text in enumerate(texts, start=1)
        )

    return FunctionTool(vector_search)


def make_ask_user(ask: Callable[[str], Awaitable[str]]) -> FunctionTool:
    """Bind an ``ask_user`` tool to a host callback that asks a human."""

    @tool(name="ask_user")
    async def ask_user(question: str) -> str:
        """Ask the user a clarifying question.

        Args:
            question: The question to ask
        """
        answer = await ask(question)
        return answer or "User skipped the question"

    return FunctionTool(ask_user)


def default_tools(
    state: PipelineState | None = None,
    *,
    allow_commands: bool = False,
    ask_user: Callable[[str], Awaitable[str]] | None = None,
) -> ToolRegistry:
    """Build the standard workspace tool set.

    Args:
        state: Pipeline state whose store and embedder back ``vector_search``
        allow_commands: Include ``run_command``
        ask_user: Host callback backing ``ask_user``
    """
    registry = ToolRegistry([read_file, write_file, edit_file, list_dir, search_files, think])
    if allow_commands:
        registry.register(run_command)
    if state is not None:
        registry.register(make_vector_search(state))
    if ask_user is not None:
        registry.register(make_ask_user(ask_user))
    return registry
