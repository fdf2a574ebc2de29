"""Settings for the command line: defaults overridable from the environment. The library API reads no env."""
from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from typing import Any


@dataclass
class Settings:
    """Where to serve / which server to call."""

    host: str = "127.0.0.1"
    port: int = 9090

    @classmethod
    def load_from_env(cls, prefix: str = "WIRECALL_", **defaults: Any) -> Settings:
        """Load from os.environ with prefix and defaults: WIRECALL_HOST, WIRECALL_PORT."""
        values = dict(defaults)
        fields = {f.name: f for f in dataclasses.fields(cls)}
        for key, value in os.environ.items():
            if not key.startswith(prefix):
                continue
            name = key[len(prefix):].lower()
            if name not in fields:
                continue
            if fields[name].type in (int, "int"):
                try:
                    values[name] = int(value)
                except ValueError as e:
                    raise ValueError(f"{key} must be an integer, got {value!r}") from e
            else:
                values[name] = value
        return cls(**values)
