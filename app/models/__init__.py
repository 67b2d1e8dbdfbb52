# Geo Alert Manager — Database Models
# Import all models here for SQLAlchemy discovery

from app.models.registry_resource import RegistryResource   # noqa
