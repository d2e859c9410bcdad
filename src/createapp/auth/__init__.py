"""Credential storage and OAuth device-flow authentication."""

from createapp.auth.credentials import CredentialStore
from createapp.auth.device_flow import DeviceAuthFlow
from createapp.auth.session import Connection, connect, login

__all__ = ["CredentialStore", "DeviceAuthFlow", "Connection", "connect", "login"]
