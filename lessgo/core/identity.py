from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    user_id: str
    display_name: str = ""


class IdentityProvider(ABC):
    """Source of the acting user. Real authentication plugs in here."""

    @abstractmethod
    def current(self) -> Identity:
        ...


class DefaultIdentityProvider(IdentityProvider):
    """Fixed fake identity used while sign-in is disabled."""

    def __init__(self, user_id: str = "currentUser", display_name: str = "Me"):
        self._identity = Identity(user_id=user_id, display_name=display_name)

    def current(self) -> Identity:
        return self._identity
