"""
Storage abstraction for Tencent COS (S3-compatible) and in-memory testing.

Each card is one JPEG object keyed ``<public_id>.jpg``. Its encoded context
lives in the object's user metadata under ``entry``; the creation time is
kept next to it under ``created`` because a metadata rewrite resets the
object's LastModified.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional, Protocol
from urllib.parse import quote
from uuid import uuid4

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

IMAGE_SUFFIX = ".jpg"
IMAGE_CONTENT_TYPE = "image/jpeg"
CREATED_KEY = "created"

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


class StorageError(Exception):
    """Raised when the object store rejects or fails a request."""


class ObjectNotFoundError(StorageError):
    """Raised when no object exists for a public id."""


@dataclass
class StoredObject:
    public_id: str
    key: str
    url: str
    created_at: float
    metadata: dict = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            "public_id": self.public_id,
            "key": self.key,
            "url": self.url,
            "created_at": self.created_at,
            "metadata": dict(self.metadata),
        }


class CardStorageClient(Protocol):
    """Defines the operations the catalog needs from object storage."""

    def upload_image(self, body: bytes, folder: str, metadata: dict) -> StoredObject:
        ...

    def list_objects(self, folder: str, max_results: int) -> list[StoredObject]:
        ...

    def head(self, public_id: str) -> StoredObject:
        ...

    def get_bytes(self, public_id: str) -> bytes:
        ...

    def replace_metadata(self, public_id: str, metadata: dict) -> None:
        ...


def thumbnail_url(url: str, width: int = 400) -> str:
    """
    Derives the fixed-width thumbnail address of an image URL.

    Hosted-media delivery URLs take a ``w_<width>`` transform segment after
    ``/upload/``; plain public URLs get the COS image-processing query. A
    URL that already has a query is a presigned URL whose signature covers
    the query, so it is returned unchanged and the thumbnail is the full
    image. Set ``public_base_url`` to get real thumbnails.
    """
    if "/upload/" in url:
        return url.replace("/upload/", f"/upload/w_{width}/", 1)
    if "?" in url:
        return url
    return f"{url}?imageMogr2/thumbnail/{width}x"


def _new_public_id(folder: str) -> str:
    return f"{folder.strip('/')}/{uuid4().hex}"


def _key_for(public_id: str) -> str:
    return f"{public_id}{IMAGE_SUFFIX}"


def _public_id_for(key: str) -> str:
    return key[: -len(IMAGE_SUFFIX)] if key.endswith(IMAGE_SUFFIX) else key


def _created_at(metadata: dict, fallback: float) -> float:
    try:
        return float(metadata.get(CREATED_KEY, fallback))
    except (TypeError, ValueError):
        return fallback


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"
    stored_objects: dict = None

    def __post_init__(self):
        if self.stored_objects is None:
            self.stored_objects = {}
        self._lock = threading.Lock()
        self._last_created = 0.0

    def _url(self, key: str) -> str:
        return f"{self.base_url}/{quote(key)}"

    def _stored(self, public_id: str) -> dict:
        stored = self.stored_objects.get(_key_for(public_id))
        if stored is None:
            raise ObjectNotFoundError(public_id)
        return stored

    def _to_object(self, key: str, stored: dict) -> StoredObject:
        metadata = dict(stored["metadata"])
        return StoredObject(
            public_id=_public_id_for(key),
            key=key,
            url=self._url(key),
            created_at=_created_at(metadata, stored["last_modified"]),
            metadata=metadata,
        )

    def upload_image(self, body: bytes, folder: str, metadata: dict) -> StoredObject:
        with self._lock:
            # Strictly increasing so ordering is stable within one clock tick.
            created = max(time.time(), self._last_created + 1e-6)
            self._last_created = created
            key = _key_for(_new_public_id(folder))
            self.stored_objects[key] = {
                "body": bytes(body),
                "metadata": {**metadata, CREATED_KEY: repr(created)},
                "last_modified": created,
            }
            return self._to_object(key, self.stored_objects[key])

    def list_objects(self, folder: str, max_results: int) -> list[StoredObject]:
        prefix = f"{folder.strip('/')}/"
        with self._lock:
            objects = [
                self._to_object(key, stored)
                for key, stored in self.stored_objects.items()
                if key.startswith(prefix)
            ]
        objects.sort(key=lambda obj: obj.created_at, reverse=True)
        return objects[:max_results]

    def head(self, public_id: str) -> StoredObject:
        with self._lock:
            return self._to_object(_key_for(public_id), self._stored(public_id))

    def get_bytes(self, public_id: str) -> bytes:
        with self._lock:
            return self._stored(public_id)["body"]

    def replace_metadata(self, public_id: str, metadata: dict) -> None:
        with self._lock:
            stored = self._stored(public_id)
            created = stored["metadata"].get(CREATED_KEY)
            stored["metadata"] = dict(metadata)
            if created is not None:
                stored["metadata"].setdefault(CREATED_KEY, created)
            stored["last_modified"] = time.time()


@dataclass
class CosStorageClient:
    """
    S3-compatible storage client for Tencent COS.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: Optional[str] = None
    presign_expires_in: int = 7 * 24 * 3600

    def __post_init__(self):
        # Use virtual-hosted style addressing to satisfy COS requirements.
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    @contextmanager
    def _translate_errors(self, target: str) -> Iterator[None]:
        try:
            yield
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _NOT_FOUND_CODES:
                raise ObjectNotFoundError(target) from e
            raise StorageError(f"Storage request failed for {target}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Storage request failed for {target}: {e}") from e

    def url_for(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{quote(key)}"
        return self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=self.presign_expires_in,
        )

    def _from_head(self, key: str, response: dict) -> StoredObject:
        metadata = dict(response.get("Metadata") or {})
        last_modified = response.get("LastModified")
        fallback = last_modified.timestamp() if last_modified else 0.0
        return StoredObject(
            public_id=_public_id_for(key),
            key=key,
            url=self.url_for(key),
            created_at=_created_at(metadata, fallback),
            metadata=metadata,
        )

    def upload_image(self, body: bytes, folder: str, metadata: dict) -> StoredObject:
        public_id = _new_public_id(folder)
        key = _key_for(public_id)
        created = time.time()
        stored_metadata = {**metadata, CREATED_KEY: repr(created)}
        with self._translate_errors(key):
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentType=IMAGE_CONTENT_TYPE,
                Metadata=stored_metadata,
            )
        return StoredObject(
            public_id=public_id,
            key=key,
            url=self.url_for(key),
            created_at=created,
            metadata=stored_metadata,
        )

    def list_objects(self, folder: str, max_results: int) -> list[StoredObject]:
        prefix = f"{folder.strip('/')}/"
        entries: list[dict] = []
        with self._translate_errors(prefix):
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                entries.extend(
                    obj
                    for obj in page.get("Contents", [])
                    if obj["Key"].endswith(IMAGE_SUFFIX)
                )
        # LastModified moves on metadata rewrites, so every object is headed and
        # ordered by its stored creation time before the listing is cut.
        objects = []
        for entry in entries:
            with self._translate_errors(entry["Key"]):
                response = self._client.head_object(Bucket=self.bucket, Key=entry["Key"])
            objects.append(self._from_head(entry["Key"], response))
        objects.sort(key=lambda obj: obj.created_at, reverse=True)
        return objects[:max_results]

    def head(self, public_id: str) -> StoredObject:
        key = _key_for(public_id)
        with self._translate_errors(key):
            response = self._client.head_object(Bucket=self.bucket, Key=key)
        return self._from_head(key, response)

    def get_bytes(self, public_id: str) -> bytes:
        key = _key_for(public_id)
        with self._translate_errors(key):
            response = self._client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()

    def replace_metadata(self, public_id: str, metadata: dict) -> None:
        key = _key_for(public_id)
        with self._translate_errors(key):
            self._client.copy_object(
                Bucket=self.bucket,
                Key=key,
                CopySource={"Bucket": self.bucket, "Key": key},
                ContentType=IMAGE_CONTENT_TYPE,
                Metadata=metadata,
                MetadataDirective="REPLACE",
            )
