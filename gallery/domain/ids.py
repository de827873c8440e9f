from __future__ import annotations

import importlib

ulid_module = importlib.import_module("ulid")


def new_message_id() -> str:
    return f"msg_{ulid_module.new().str}"
