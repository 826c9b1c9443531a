from dataclasses import dataclass

from backend.models.user import STAFF_ROLES, Role


@dataclass(frozen=True)
class Actor:
    """Authenticated caller, passed explicitly into every scheduling operation."""

    user_id: int
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_petitioner(self) -> bool:
        return self.role == Role.PETITIONER
