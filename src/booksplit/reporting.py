"""stderr logging and stdout JSON helpers shared by the library and CLI.

Human messages go to stderr; structured output goes to stdout as JSON.
"""
from __future__ import annotations

import sys
from typing import Any

import orjson


def log(msg: str) -> None:
    print(msg, file=sys.stderr, flush=True)


def warn(msg: str) -> None:
    log(f"Warning: {msg}")


def dump_json(obj: Any) -> None:
    sys.stdout.buffer.write(orjson.dumps(obj, option=orjson.OPT_INDENT_2))
    sys.stdout.buffer.write(b"\n")
    sys.stdout.buffer.flush()
