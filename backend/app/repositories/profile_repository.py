# backend/app/repositories/profile_repository.py
from typing import Optional

from sqlalchemy.orm import Session

from ..models.profile import Profile
from .base_repository import BaseRepository


class ProfileRepository(BaseRepository[Profile]):
    def __init__(self, db: Session):
        super().__init__(db, Profile)

    def get_by_email(self, email: str) -> Optional[Profile]:
        return self.db.query(Profile).filter(Profile.email == email.strip().lower()).first()
