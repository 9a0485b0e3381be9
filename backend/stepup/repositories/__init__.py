"""Repository package exposing persistence-layer access for domain models."""

from __future__ import annotations

from stepup.repositories.base import BaseRepository
from stepup.repositories.user import UserRepository, to_subject

__all__ = ["BaseRepository", "UserRepository", "to_subject"]
