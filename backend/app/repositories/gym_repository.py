# backend/app/repositories/gym_repository.py
from typing import Optional

from sqlalchemy.orm import Query, Session, joinedload

from ..models.gym import Gym, Package, PackageVariant
from .base_repository import BaseRepository


class GymRepository(BaseRepository[Gym]):
    def __init__(self, db: Session):
        super().__init__(db, Gym)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(joinedload(Gym.owner))


class PackageRepository(BaseRepository[Package]):
    def __init__(self, db: Session):
        super().__init__(db, Package)

    def get_for_gym(self, package_id: str, gym_id: str) -> Optional[Package]:
        """A package only counts if it belongs to the gym being booked."""
        return (
            self.db.query(Package)
            .options(joinedload(Package.variants))
            .filter(Package.id == package_id, Package.gym_id == gym_id)
            .first()
        )

    def get_variant_for_package(self, variant_id: str, package_id: str) -> Optional[PackageVariant]:
        return (
            self.db.query(PackageVariant)
            .filter(PackageVariant.id == variant_id, PackageVariant.package_id == package_id)
            .first()
        )
