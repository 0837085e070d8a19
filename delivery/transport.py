"""
Feed Transports
Push assembled feed documents to the delivery endpoint
"""
from __future__ import annotations

import asyncio
import ftplib
import io
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional, TypeVar

from config.settings import DeliverySettings, get_delivery_settings
from utils.exceptions import ConfigurationError, DeliveryFailure

from .feed import FeedDocument


logger = logging.getLogger(__name__)

R = TypeVar("R")


class FeedTransport(ABC):
    """Delivery endpoint. Failures raise DeliveryFailure; nothing is retried."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    async def send(self, document: FeedDocument) -> str:
        """Transfer document; returns the remote location."""
        pass

    async def _run_blocking(self, func: Callable[..., R], *args, **kwargs) -> R:
        return await asyncio.to_thread(func, *args, **kwargs)


class LocalDirectoryTransport(FeedTransport):
    """Write feed documents into a local directory (dev / drop-folder setups)."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    @property
    def name(self) -> str:
        return "local"

    async def send(self, document: FeedDocument) -> str:
        target = self.directory / document.filename
        try:
            await self._run_blocking(self._write, target, document.content)
        except OSError as exc:
            raise DeliveryFailure(
                "Failed to write feed document",
                {"path": str(target), "error": str(exc)},
            ) from exc
        logger.info("feed_delivered transport=local path=%s", target)
        return str(target)

    @staticmethod
    def _write(target: Path, content: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_suffix(target.suffix + ".tmp")
        tmp.write_bytes(content)
        tmp.replace(target)


class FtpFeedTransport(FeedTransport):
    """Upload feed documents over FTP (explicit TLS by default)."""

    def __init__(
        self,
        host: str,
        *,
        port: int = 21,
        username: str = "",
        password: str = "",
        directory: str = "",
        use_tls: bool = True,
        timeout: float = 60.0,
        ftp_factory: Optional[Callable[..., ftplib.FTP]] = None,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.directory = directory
        self.use_tls = use_tls
        self.timeout = timeout
        self._ftp_factory = ftp_factory

    @property
    def name(self) -> str:
        return "ftp"

    def _connect(self) -> ftplib.FTP:
        if self._ftp_factory is not None:
            ftp = self._ftp_factory()
        elif self.use_tls:
            ftp = ftplib.FTP_TLS(timeout=self.timeout)
        else:
            ftp = ftplib.FTP(timeout=self.timeout)
        ftp.connect(self.host, self.port)
        ftp.login(self.username, self.password)
        if isinstance(ftp, ftplib.FTP_TLS):
            ftp.prot_p()
        if self.directory:
            ftp.cwd(self.directory)
        return ftp

    def _upload(self, document: FeedDocument) -> None:
        ftp = self._connect()
        try:
            ftp.storbinary(f"STOR {document.filename}", io.BytesIO(document.content))
        finally:
            try:
                ftp.quit()
            except ftplib.all_errors:
                ftp.close()

    async def send(self, document: FeedDocument) -> str:
        try:
            await self._run_blocking(self._upload, document)
        except ftplib.all_errors as exc:
            raise DeliveryFailure(
                "FTP transfer failed",
                {"host": self.host, "file": document.filename, "error": str(exc)},
            ) from exc
        location = f"ftp://{self.host}/{self.directory.strip('/') + '/' if self.directory else ''}{document.filename}"
        logger.info("feed_delivered transport=ftp location=%s", location)
        return location


def get_transport(settings: Optional[DeliverySettings] = None) -> FeedTransport:
    """Build the configured transport."""
    settings = settings or get_delivery_settings()
    mode = str(settings.mode or "").strip().lower()
    if mode == "local":
        return LocalDirectoryTransport(Path(settings.local_directory))
    if mode == "ftp":
        if not settings.ftp_host:
            raise ConfigurationError("DELIVERY_FTP_HOST is not set")
        return FtpFeedTransport(
            settings.ftp_host,
            port=settings.ftp_port,
            username=settings.ftp_username or "",
            password=settings.ftp_password or "",
            directory=settings.ftp_directory or "",
            use_tls=settings.ftp_use_tls,
            timeout=settings.timeout,
        )
    raise ConfigurationError(f"Unsupported delivery mode: {settings.mode}")
