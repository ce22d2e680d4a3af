"""Thin wrapper around the Gemini CLI for reading documents into JSON.

The CLI only sees files inside its working directory, so each document is
copied into a private temp directory under a shell-safe name first.
"""

import json
import logging
import re
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

GEMINI_COMMAND = "gemini"
DEFAULT_TIMEOUT = 120

JSON_PROMPT_HEADER = """Read the document {file_name} in the current directory and answer with one JSON object.

Output rules:
- The reply is parsed by a program: no markdown fences, no prose before or after the object
- Dates as YYYY-MM-DD
- When the document cannot be read or is not what is asked for, reply with
  {{"error": true, "message": "<what went wrong>"}}

Task:
"""

JSON_PROMPT_FOOTER = "\n\nReply with the JSON object only."


def build_prompt(task: str, file_name: str) -> str:
    """Wrap an extraction task with the JSON output rules."""
    return JSON_PROMPT_HEADER.format(file_name=file_name) + task + JSON_PROMPT_FOOTER


def _safe_file_name(path: Path) -> str:
    stem = re.sub(r"[^A-Za-z0-9_-]", "_", path.stem)
    return f"{stem}{path.suffix.lower()}"


def _run_gemini_cli(prompt: str, timeout: int = DEFAULT_TIMEOUT, cwd: Optional[str] = None) -> str:
    """Run the CLI once and return its stdout.

    Raises:
        RuntimeError: If the CLI is missing, exits non-zero or times out
    """
    cmd = [GEMINI_COMMAND, "--allowed-mcp-server-names", "none", "-o", "text", prompt]

    try:
        completed = subprocess.run(cmd, cwd=cwd, timeout=timeout, capture_output=True, text=True, check=True)
    except FileNotFoundError as e:
        raise RuntimeError(
            f"Gemini CLI not found. Install it and make sure '{GEMINI_COMMAND}' is on PATH."
        ) from e
    except subprocess.TimeoutExpired as e:
        raise RuntimeError(f"Gemini CLI timed out after {timeout}s") from e
    except subprocess.CalledProcessError as e:
        stderr = (e.stderr or "").strip()
        raise RuntimeError(f"Gemini CLI exited with status {e.returncode}: {stderr}") from e

    return completed.stdout.strip()


def extract_json(reply: str):
    """Parse the JSON object in a model reply.

    Tolerates ```json fences and chatter around the object.

    Raises:
        json.JSONDecodeError: If no JSON can be parsed
    """
    fenced = re.search(r"```(?:json)?\s*(.*?)```", reply, re.DOTALL)
    if fenced:
        reply = fenced.group(1)

    reply = reply.strip()
    if not reply.startswith(("{", "[")):
        start, end = reply.find("{"), reply.rfind("}")
        if 0 <= start < end:
            reply = reply[start:end + 1]

    return json.loads(reply)


def process_file(task: str, document: Union[str, Path], timeout: int = DEFAULT_TIMEOUT):
    """Have Gemini read a document and return its JSON reply.

    Args:
        task: What to extract, including the expected JSON shape
        document: PDF or image path
        timeout: CLI timeout in seconds

    Returns:
        The parsed reply. This may be an {"error": true, ...} object; the
        caller decides what that means.

    Raises:
        RuntimeError: If the document is missing, the CLI fails, or the
            reply isn't JSON
    """
    source = Path(document)
    if not source.exists():
        raise RuntimeError(f"File not found: {source}")

    file_name = _safe_file_name(source)
    reply = ""
    with tempfile.TemporaryDirectory(prefix="paylog_gemini_") as workdir:
        shutil.copy(source, Path(workdir) / file_name)
        logger.debug(f"Running Gemini CLI on {file_name}")
        reply = _run_gemini_cli(build_prompt(task, file_name), timeout=timeout, cwd=workdir)

    try:
        return extract_json(reply)
    except json.JSONDecodeError as e:
        raise RuntimeError(f"Failed to parse JSON from Gemini output: {e}\nRaw output: {reply[:500]}") from e
