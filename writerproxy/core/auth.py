# writerproxy/core/auth.py
import base64
import binascii
import secrets

from fastapi import Depends, HTTPException, WebSocket, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from .configmanager import config

security = HTTPBasic()


def _credentials_ok(username: str, password: str) -> bool:
    correct_username = str(config.get("auth", "username"))
    correct_password = str(config.get("auth", "password"))
    return (
        secrets.compare_digest(username.encode(), correct_username.encode()) and
        secrets.compare_digest(password.encode(), correct_password.encode())
    )


def verify_web_auth(credentials: HTTPBasicCredentials = Depends(security)) -> None:
    if not _credentials_ok(credentials.username, credentials.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )


def ws_basic_auth_ok(ws: WebSocket) -> bool:
    auth = ws.headers.get("authorization") or ""
    try:
        kind, b64 = auth.split(" ", 1)
        if kind.lower() != "basic":
            return False
        userpass = base64.b64decode(b64.strip()).decode("utf-8", "ignore")
        username, password = userpass.split(":", 1)
    except (ValueError, binascii.Error):
        return False
    return _credentials_ok(username, password)
