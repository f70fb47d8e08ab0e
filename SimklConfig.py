import json
import logging
import os
from typing import Optional

import config

CLIENT_ID_KEY = "client_id"
ACCESS_TOKEN_KEY = "access_token"


class SimklConfigStore(object):
    """
    Small JSON file holding the Simkl client id and access token.

    Every write rewrites the whole file through a temporary file and an atomic
    replace, so an interrupted write never leaves a truncated config behind.
    Concurrent writers are last-write-wins.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path or config.SIMKL_CONFIG_PATH

    def _load(self) -> dict:
        if not os.path.isfile(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as infile:
                data = json.load(infile)
        except (OSError, json.JSONDecodeError) as e:
            logging.warning(f"Could not read config file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logging.warning(f"Ignoring config file {self.path}: expected a JSON object")
            return {}
        return data

    def _save(self, data: dict) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = self.path + ".tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)

    def get(self, key: str) -> Optional[str]:
        value = self._load().get(key)
        return value if value else None

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)
        logging.debug(f"Config: stored '{key}' in {self.path}")

    def delete(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)
            logging.debug(f"Config: removed '{key}' from {self.path}")

    def getClientId(self) -> Optional[str]:
        return self.get(CLIENT_ID_KEY)

    def setClientId(self, client_id: str) -> None:
        self.set(CLIENT_ID_KEY, client_id)

    def getAccessToken(self) -> Optional[str]:
        return self.get(ACCESS_TOKEN_KEY)

    def setAccessToken(self, token: str) -> None:
        self.set(ACCESS_TOKEN_KEY, token)

    def clearAuth(self) -> None:
        """Forget the access token. The client id is kept."""
        self.delete(ACCESS_TOKEN_KEY)

    def isAuthenticated(self) -> bool:
        return bool(self.getAccessToken()) and bool(self.getClientId())
