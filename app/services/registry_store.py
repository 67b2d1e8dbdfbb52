# app/services/registry_store.py
"""
Tenant-scoped hierarchical resource store ("registry") on top of SQLAlchemy.

A resource is addressed by an absolute, slash separated path and carries a
content blob, a media type, a multi-valued property bag and its creation time.
Collections are not stored: a path with descendants but no row of its own is
returned as a collection whose content is the list of its child paths.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.exceptions import StoreAccessError
from app.models.registry_resource import RegistryResource
from app.utils.logger import get_logger

logger = get_logger(__name__)

_SLASHES = re.compile(r"/{2,}")


def normalize_path(path: str) -> str:
    """Collapse duplicate slashes and drop the trailing one: 'a//b/' -> '/a/b'."""
    path = _SLASHES.sub("/", "/" + path.strip())
    if len(path) > 1:
        path = path.rstrip("/")
    return path


@dataclass
class Resource:
    path: Optional[str] = None
    content: Union[bytes, list, None] = None
    media_type: Optional[str] = None
    properties: dict = field(default_factory=dict)
    created_time: Optional[datetime] = None
    is_collection: bool = False

    def set_content(self, content):
        if isinstance(content, str):
            content = content.encode("utf-8")
        self.content = content

    def content_text(self) -> str:
        if self.content is None or self.is_collection:
            return ""
        return self.content.decode("utf-8", errors="replace")

    def add_property(self, name: str, value: str):
        self.properties.setdefault(name, []).append(value)

    def get_property(self, name: str) -> Optional[str]:
        """First value of a property, None when it was never set."""
        values = self.properties.get(name)
        return values[0] if values else None

    @property
    def created_millis(self) -> Optional[int]:
        if self.created_time is None:
            return None
        created = self.created_time
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return int(created.timestamp() * 1000)


class RegistryStore:
    def __init__(self, session_factory: Callable[[], Session], tenant_id: int):
        self._session_factory = session_factory
        self.tenant_id = tenant_id

    def new_resource(self) -> Resource:
        return Resource()

    # ── Reads ─────────────────────────────────────────────────────────────
    def get(self, path: str) -> Optional[Resource]:
        path = normalize_path(path)
        db = self._session_factory()
        try:
            row = self._row(db, path)
            if row is not None:
                return self._to_resource(row)
            child_paths = self._child_paths(db, path)
            if child_paths:
                return Resource(path=path, content=child_paths, is_collection=True)
            return None
        except SQLAlchemyError as e:
            raise StoreAccessError(f"Error while reading the registry path: {path}", path) from e
        finally:
            db.close()

    def exists(self, path: str) -> bool:
        return self.get(path) is not None

    def children(self, path: str) -> list:
        path = normalize_path(path)
        db = self._session_factory()
        try:
            return self._child_paths(db, path)
        except SQLAlchemyError as e:
            raise StoreAccessError(f"Error while listing the registry path: {path}", path) from e
        finally:
            db.close()

    # ── Writes ────────────────────────────────────────────────────────────
    def put(self, path: str, resource: Resource) -> str:
        """Insert or replace the resource at path. Replacing keeps the creation time."""
        path = normalize_path(path)
        content = resource.content
        if isinstance(content, str):
            content = content.encode("utf-8")
        now = datetime.utcnow()

        db = self._session_factory()
        try:
            row = self._row(db, path)
            if row is None:
                row = RegistryResource(tenant_id=self.tenant_id, path=path, created_at=now)
                db.add(row)
            row.content = content
            row.media_type = resource.media_type
            row.properties = {k: list(v) for k, v in resource.properties.items()}
            row.updated_at = now
            db.commit()
            logger.debug(f"[REGISTRY] put {path} ({len(content or b'')} bytes)")
            return path
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreAccessError(f"Error while writing the registry path: {path}", path) from e
        finally:
            db.close()

    def delete(self, path: str):
        """
        Delete the resource at path. A path with no resource of its own is a
        collection and everything below it goes. Missing paths are a no-op.
        """
        path = normalize_path(path)
        db = self._session_factory()
        try:
            own = self._row(db, path)
            rows = [own] if own is not None else self._descendants(db, path)
            for row in rows:
                db.delete(row)
            db.commit()
            logger.debug(f"[REGISTRY] deleted {path} ({len(rows)} resources)")
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreAccessError(f"Error while deleting the registry path: {path}", path) from e
        finally:
            db.close()

    # ── Helpers ───────────────────────────────────────────────────────────
    def _row(self, db: Session, path: str) -> Optional[RegistryResource]:
        return db.query(RegistryResource).filter(
            RegistryResource.tenant_id == self.tenant_id,
            RegistryResource.path == path,
        ).first()

    def _descendants(self, db: Session, path: str) -> list:
        prefix = "/" if path == "/" else path + "/"
        # LIKE treats '_' as a wildcard, so re-check the prefix in Python
        rows = db.query(RegistryResource).filter(
            RegistryResource.tenant_id == self.tenant_id,
            RegistryResource.path.like(prefix + "%"),
        ).all()
        return [r for r in rows if r.path.startswith(prefix) and r.path != path]

    def _child_paths(self, db: Session, path: str) -> list:
        prefix = "/" if path == "/" else path + "/"
        children = set()
        for row in self._descendants(db, path):
            segment = row.path[len(prefix):].split("/", 1)[0]
            children.add(prefix + segment)
        return sorted(children)

    @staticmethod
    def _to_resource(row: RegistryResource) -> Resource:
        return Resource(
            path=row.path,
            content=row.content,
            media_type=row.media_type,
            properties={k: list(v) for k, v in (row.properties or {}).items()},
            created_time=row.created_at,
        )
