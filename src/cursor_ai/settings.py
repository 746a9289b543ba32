# settings.py
# JSON-backed settings and project-template store.
#
# One SettingsService instance is created by the CLI and passed to whatever
# needs it. Nothing is loaded at import time. Separate processes writing the
# same file are not coordinated.

import copy
import json
import os
import re
from pathlib import Path
from typing import Any

from loguru import logger

from cursor_ai.errors import SettingsError

CONFIG_FILENAME = "config.json"

DEFAULT_SETTINGS: dict[str, Any] = {
    "global": {
        "maxDepth": 5,
        "includeHidden": False,
        "excludeDirs": ["node_modules", ".git", ".vscode", ".idea", ".DS_Store"],
        "fileTypes": [".js", ".ts", ".jsx", ".tsx", ".json", ".md", ".txt", ".py"],
        "sortBy": "name",
        "order": "asc",
    },
    "templates": {
        "node": {
            "basic": {
                "description": "Minimal Node.js project",
                "files": {
                    "package.json": {
                        "name": "{{name}}",
                        "version": "1.0.0",
                        "type": "module",
                        "main": "index.js",
                        "scripts": {"start": "node index.js", "dev": "node --watch index.js"},
                    },
                    "index.js": "console.log('Hello, World!');\n",
                    "README.md": "# {{name}}\n\nA Node.js project.\n",
                },
            },
            "express": {
                "description": "Express.js web server",
                "files": {
                    "package.json": {
                        "name": "{{name}}",
                        "version": "1.0.0",
                        "type": "module",
                        "main": "index.js",
                        "scripts": {"start": "node index.js", "dev": "node --watch index.js"},
                        "dependencies": {"express": "^4.18.2"},
                    },
                    "index.js": (
                        "import express from 'express';\n\n"
                        "const app = express();\n"
                        "const PORT = process.env.PORT || 3000;\n\n"
                        "app.get('/', (req, res) => {\n  res.send('Hello, World!');\n});\n\n"
                        "app.listen(PORT, () => {\n  console.log(`Server running on port ${PORT}`);\n});\n"
                    ),
                    "README.md": "# {{name}}\n\nAn Express.js project.\n",
                },
            },
        },
        "python": {
            "basic": {
                "description": "Minimal Python project",
                "files": {
                    "main.py": "print('Hello, World!')\n",
                    "requirements.txt": "",
                    "README.md": "# {{name}}\n\nA Python project.\n",
                },
            },
        },
    },
    "workspace": {
        "backupPath": None,
        "includeNodeModules": False,
        "compression": False,
    },
    "ai": {
        "model": "google/gemini-2.0-flash-001",
        "maxSteps": 20,
        "temperature": 0.7,
    },
}

_TEMPLATE_VAR = re.compile(r"\{\{(\w+)\}\}")


def default_home() -> Path:
    """$CURSOR_AI_HOME, else ~/.cursor-ai."""
    env = os.getenv("CURSOR_AI_HOME", "").strip()
    return Path(os.path.expanduser(env)) if env else Path.home() / ".cursor-ai"


def process_template(template: Any, variables: dict[str, Any]) -> Any:
    """
    Substitute {{var}} in every string of a nested template.
    Unknown or empty variables leave the placeholder intact.
    """
    if isinstance(template, str):
        return _TEMPLATE_VAR.sub(lambda m: str(variables.get(m.group(1)) or m.group(0)), template)
    if isinstance(template, list):
        return [process_template(item, variables) for item in template]
    if isinstance(template, dict):
        return {key: process_template(value, variables) for key, value in template.items()}
    return template


class SettingsService:
    """
    Explicit settings store.

    Example:
        settings = SettingsService(default_home() / "config.json")
        settings.load()
        settings.get("ai.maxSteps")
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path else default_home() / CONFIG_FILENAME
        self._config: dict[str, Any] | None = None

    @property
    def loaded(self) -> bool:
        return self._config is not None

    def _require(self) -> dict[str, Any]:
        if self._config is None:
            raise SettingsError("Settings not loaded. Call load() first.")
        return self._config

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> dict[str, Any]:
        """Read the file and shallow-merge it over the defaults. A missing file is created."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            logger.info("No settings at '{}', writing defaults", self.path)
            self._config = copy.deepcopy(DEFAULT_SETTINGS)
            self.save()
            return self._config

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise SettingsError(f"Settings file '{self.path}' is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise SettingsError(f"Settings file '{self.path}' must contain a JSON object")

        self._config = {**copy.deepcopy(DEFAULT_SETTINGS), **data}
        logger.debug("Loaded settings from '{}'", self.path)
        return self._config

    def save(self) -> None:
        config = self._require()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(config, indent=2), encoding="utf-8")
        logger.debug("Saved settings to '{}'", self.path)

    def reset(self) -> None:
        self._config = copy.deepcopy(DEFAULT_SETTINGS)
        self.save()
        logger.info("Settings reset to defaults")

    # ------------------------------------------------------------------
    # Dotted-path access
    # ------------------------------------------------------------------

    def get(self, path: str = "") -> Any:
        """Value at a dotted path, the whole config for "", None when absent."""
        value: Any = self._require()
        if not path:
            return value
        for key in path.split("."):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return None
        return value

    def set(self, path: str, value: Any) -> None:
        """Set a dotted path in memory, creating intermediate objects. Call save() to persist."""
        current = self._require()
        *parents, last = path.split(".")
        for key in parents:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]
        current[last] = value

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def templates(self) -> dict[str, dict[str, Any]]:
        return self._require().get("templates", {})

    def get_template(self, type_: str, name: str) -> dict[str, Any] | None:
        return self.templates().get(type_, {}).get(name)

    def add_template(self, type_: str, name: str, template: dict[str, Any]) -> None:
        config = self._require()
        config.setdefault("templates", {}).setdefault(type_, {})[name] = template
        self.save()

    def remove_template(self, type_: str, name: str) -> bool:
        group = self.templates().get(type_, {})
        if name not in group:
            return False
        del group[name]
        self.save()
        return True
