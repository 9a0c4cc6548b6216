"""Infrastructure persistence layer."""

from .database import Database
from .models import (
    Base,
    GalleryModel,
    ImageModel,
    SceneModel,
    TagAliasModel,
    TagModel,
)

__all__ = [
    # Database
    "Database",
    "Base",
    # Models
    "GalleryModel",
    "ImageModel",
    "SceneModel",
    "TagAliasModel",
    "TagModel",
]
