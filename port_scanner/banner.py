from __future__ import annotations

import logging
import re
import socket
from typing import Optional

from .errors import BannerReadFailure

logger = logging.getLogger(__name__)

BANNER_READ_SIZE = 1024

_PRINTABLE = re.compile(r"[^\x09\x0a\x0d\x20-\x7e]")


def _clean_text(s: str, max_len: int = 200) -> str:
    s = _PRINTABLE.sub("", s)
    s = s.strip()
    if len(s) > max_len:
        return s[:max_len] + "..."
    return s


def _recv_once(sock: socket.socket, n: int, timeout: float) -> bytes:
    sock.settimeout(timeout)
    try:
        return sock.recv(n)
    except OSError as e:
        raise BannerReadFailure(str(e) or e.__class__.__name__) from e


def read_banner(sock: socket.socket, timeout: float, n: int = BANNER_READ_SIZE) -> bytes:
    """
    One best-effort read right after connect().
    Timeouts, resets and empty reads all come back as b"".
    """
    try:
        data = _recv_once(sock, n, timeout)
    except BannerReadFailure as e:
        logger.debug("No banner: %s", e)
        return b""
    if not data:
        logger.debug("No banner: peer sent 0 bytes")
    return data


def decode_banner(data: bytes) -> str:
    if not data:
        return ""
    return _clean_text(data.decode("utf-8", errors="ignore"))


def _detect_mysql(handshake: bytes) -> Optional[str]:
    """
    MySQL handshake: [packet header(4 bytes)][protocol(1 byte)][server_version null-terminated]...
    """
    if not handshake or len(handshake) < 6:
        return None
    # protocol version is usually 0x0a (10)
    if handshake[4] != 0x0A:
        return None
    try:
        end = handshake.index(b"\x00", 5)
    except ValueError:
        return None
    ver = _clean_text(handshake[5:end].decode(errors="ignore"), 80)
    if ver:
        return f"mysql {ver}"
    return "mysql"


def _detect_ssh(data: bytes) -> Optional[str]:
    text = data.decode(errors="ignore")
    if "SSH-" in text:
        return "ssh"
    return None


def guess_service(data: bytes) -> Optional[str]:
    """
    Passive guess from whatever the server sent first. Nothing is sent back.
    """
    if not data:
        return None

    ssh = _detect_ssh(data)
    if ssh:
        return ssh

    mysql = _detect_mysql(data)
    if mysql:
        return mysql

    head = data[:16].decode(errors="ignore")
    if head.startswith("HTTP/"):
        return "http"
    if head.startswith("220") and b"FTP" in data.upper():
        return "ftp"
    if head.startswith("220") and b"SMTP" in data.upper():
        return "smtp"
    if head.startswith("+OK"):
        return "pop3"
    if head.startswith("* OK"):
        return "imap"
    return None
