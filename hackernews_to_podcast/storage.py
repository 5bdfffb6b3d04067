from __future__ import annotations

import datetime as dt
import logging
import os
from abc import ABC, abstractmethod
from typing import List
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import StorageConfig
from .errors import StorageError


logger = logging.getLogger(__name__)


def content_key(env: str, date: str) -> str:
    return f"content:{env}:hacker-news:{date}"


def audio_key(date: str) -> str:
    return f"audio/{date}-complete.mp3"


def intro_audio_key(date: str) -> str:
    return f"audio/{date}-intro.mp3"


def subtitle_key(date: str) -> str:
    return f"audio/{date}-complete.srt"


def legacy_audio_keys(env: str, date: str) -> List[str]:
    return [
        f"audio/hacker-news-{date}.mp3",
        f"{date.replace('-', '/')}/{env}/hacker-news-{date}.mp3",
    ]


def ensure_dirs(*paths: str) -> None:
    for p in paths:
        os.makedirs(p, exist_ok=True)


class ArtifactStore(ABC):
    """Byte objects addressed by a logical key; last writer wins."""

    @abstractmethod
    def exists(self, key: str) -> bool:
        ...

    @abstractmethod
    def get(self, key: str) -> bytes:
        ...

    @abstractmethod
    def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store `data` and return a locator (URL or path) for it."""

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def presign(self, key: str, expires: dt.timedelta) -> str:
        ...


class LocalArtifactStore(ArtifactStore):
    """Directory-backed store for local runs and tests."""

    def __init__(self, root: str) -> None:
        self.root = os.path.abspath(root)
        ensure_dirs(self.root)

    def _path(self, key: str) -> str:
        # ':' is legal in keys but not in every filesystem
        rel = key.replace(":", "_").lstrip("/")
        path = os.path.abspath(os.path.join(self.root, rel))
        if not path.startswith(self.root + os.sep):
            raise StorageError(f"key escapes store root: {key}")
        return path

    def exists(self, key: str) -> bool:
        return os.path.isfile(self._path(key))

    def get(self, key: str) -> bytes:
        path = self._path(key)
        try:
            with open(path, "rb") as f:
                return f.read()
        except OSError as e:
            raise StorageError(f"cannot read {key}: {e}") from e

    def put(self, key: str, data: bytes, content_type: str) -> str:
        path = self._path(key)
        try:
            ensure_dirs(os.path.dirname(path))
            tmp = path + ".part"
            with open(tmp, "wb") as f:
                f.write(data)
            os.replace(tmp, path)
        except OSError as e:
            raise StorageError(f"cannot write {key}: {e}") from e
        logger.info("Stored object", extra={"key": key, "bytes": len(data), "content_type": content_type})
        return path

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            os.remove(path)
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageError(f"cannot delete {key}: {e}") from e

    def presign(self, key: str, expires: dt.timedelta) -> str:
        return "file://" + quote(self._path(key))


class S3ArtifactStore(ArtifactStore):
    """S3-compatible bucket (MinIO, R2, DigitalOcean Spaces, AWS)."""

    def __init__(
        self,
        endpoint: str,
        bucket: str,
        access_key: str,
        secret_key: str,
        region: str = "us-east-1",
        presign_expiry: dt.timedelta = dt.timedelta(days=7),
        client=None,
    ) -> None:
        self.bucket = bucket
        self.presign_expiry = presign_expiry
        if client is None:
            session = boto3.session.Session()
            client = session.client(
                "s3",
                region_name=region,
                endpoint_url=endpoint or None,
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
            )
        self.client = client

    @classmethod
    def from_config(cls, cfg: StorageConfig) -> "S3ArtifactStore":
        access_key = os.environ.get(cfg.access_key_env)
        secret_key = os.environ.get(cfg.secret_key_env)
        if not access_key or not secret_key:
            raise StorageError(
                f"missing bucket credentials; set {cfg.access_key_env} and {cfg.secret_key_env}"
            )
        store = cls(
            endpoint=cfg.endpoint,
            bucket=cfg.bucket,
            access_key=access_key,
            secret_key=secret_key,
            region=cfg.region,
            presign_expiry=dt.timedelta(hours=cfg.presign_expiry_hours),
        )
        store.ensure_bucket()
        return store

    def ensure_bucket(self) -> None:
        try:
            self.client.head_bucket(Bucket=self.bucket)
            return
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code not in ("404", "NoSuchBucket", "NotFound"):
                raise StorageError(f"cannot access bucket {self.bucket}: {e}") from e
        logger.info("Creating bucket", extra={"bucket": self.bucket})
        try:
            self.client.create_bucket(Bucket=self.bucket)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"cannot create bucket {self.bucket}: {e}") from e

    def exists(self, key: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in ("404", "NoSuchKey", "NotFound"):
                return False
            raise StorageError(f"head_object failed for {key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"head_object failed for {key}: {e}") from e
        return True

    def get(self, key: str) -> bytes:
        try:
            resp = self.client.get_object(Bucket=self.bucket, Key=key)
            return resp["Body"].read()
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"get_object failed for {key}: {e}") from e

    def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"put_object failed for {key}: {e}") from e
        logger.info("Uploaded object", extra={"key": key, "bytes": len(data), "content_type": content_type})
        try:
            return self.presign(key, self.presign_expiry)
        except StorageError as e:
            logger.warning("Presign failed; returning bucket path", extra={"key": key, "error": str(e)})
            return f"/{self.bucket}/{key}"

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"delete_object failed for {key}: {e}") from e

    def presign(self, key: str, expires: dt.timedelta) -> str:
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=int(expires.total_seconds()),
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"presign failed for {key}: {e}") from e


def build_store(cfg: StorageConfig) -> ArtifactStore:
    if cfg.backend == "local":
        return LocalArtifactStore(cfg.local_root)
    return S3ArtifactStore.from_config(cfg)
