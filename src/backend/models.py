# provide dataclass models for rows that never leave the local backend

from dataclasses import dataclass


@dataclass(frozen=True)
class User:
    uid: str
    name: str
    email: str
    pwd_hash: str
    is_product_admin: bool
    is_delivery_admin: bool

    @property
    def is_staff(self) -> bool:
        return self.is_product_admin or self.is_delivery_admin
