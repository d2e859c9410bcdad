"""Persist the OAuth client id and access token in a flat .env file.

The file is read with python-dotenv, the same parser pydantic-settings uses,
so inline comments and quoting mean the same thing to both readers.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path

from dotenv import dotenv_values

from createapp.errors import CredentialStoreError
from createapp.models import Credentials

logger = logging.getLogger(__name__)

CLIENT_ID_KEY = "OAUTH_CLIENT_ID"
TOKEN_KEY = "GITHUB_TOKEN"

_BARE_VALUE = re.compile(r"[\w.,:/@+-]*")


def _format_line(key: str, value: str | None) -> str:
    if value is None:
        return key
    if _BARE_VALUE.fullmatch(value):
        return f"{key}={value}"
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"{key}='{escaped}'"


class CredentialStore:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    def _read(self) -> dict[str, str | None]:
        if not self.path.is_file():
            return {}
        try:
            return dict(dotenv_values(self.path, interpolate=False, encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as exc:
            raise CredentialStoreError(f"failed to read {self.path}: {exc}") from exc

    def _write(self, values: dict[str, str | None]) -> None:
        lines = [_format_line(key, val) for key, val in sorted(values.items())]
        content = "\n".join(lines) + "\n" if lines else ""
        directory = self.path.parent
        tmp_name: str | None = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            if os.name == "posix":
                os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)  # atomic finalize
        except OSError as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.remove(tmp_name)
            raise CredentialStoreError(f"failed to write {self.path}: {exc}") from exc

    def load(self) -> Credentials | None:
        """Return stored credentials, or None when either key is absent."""
        values = self._read()
        client_id = (values.get(CLIENT_ID_KEY) or "").strip()
        token = (values.get(TOKEN_KEY) or "").strip()
        if not client_id or not token:
            return None
        return Credentials(client_id=client_id, access_token=token)

    def save(self, credentials: Credentials) -> None:
        """Write both credential keys, keeping any unrelated keys in the file."""
        values = self._read()
        values[CLIENT_ID_KEY] = credentials.client_id
        if credentials.access_token:
            values[TOKEN_KEY] = credentials.access_token
        else:
            values.pop(TOKEN_KEY, None)
        self._write(values)
        logger.info("Credentials saved to %s", self.path)

    def clear(self) -> bool:
        """Drop the stored token. Returns False when there was none."""
        values = self._read()
        if TOKEN_KEY not in values:
            return False
        del values[TOKEN_KEY]
        self._write(values)
        logger.info("Stored token removed from %s", self.path)
        return True
