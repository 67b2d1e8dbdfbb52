# app/models/registry_resource.py
"""
Registry resources table — one row per path-addressed resource.
Properties are a multi-map stored as JSON: {"queryName": ["Q1"], ...}.
Collections are implicit: a path is a collection when other rows live under it.
"""

from sqlalchemy import Column, Integer, String, DateTime, LargeBinary, JSON, UniqueConstraint
from app.database import Base


class RegistryResource(Base):
    __tablename__ = "registry_resources"
    __table_args__ = (UniqueConstraint("tenant_id", "path", name="uq_registry_tenant_path"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    path = Column(String(1024), nullable=False, index=True)
    content = Column(LargeBinary)
    media_type = Column(String(100))
    properties = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime)

    def __repr__(self):
        return f"<RegistryResource tenant={self.tenant_id} path={self.path}>"
