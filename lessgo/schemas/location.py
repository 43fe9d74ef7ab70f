import math
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

EARTH_RADIUS_M = 6_371_000.0


class LocationType(str, Enum):
    specific_address = "specific_address"
    general_city = "general_city"

    @property
    def display_name(self) -> str:
        return {
            LocationType.specific_address: "Specific Address",
            LocationType.general_city: "General City",
        }[self]


class Location(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    location_type: LocationType = LocationType.specific_address
    meeting_instructions: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def at(cls, latitude: float, longitude: float, **fields) -> "Location":
        return cls(latitude=latitude, longitude=longitude, location_type=LocationType.specific_address, **fields)

    @classmethod
    def general_city(cls, city: str, state: Optional[str] = None, **fields) -> "Location":
        return cls(city=city, state=state, location_type=LocationType.general_city, **fields)

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def distance_to(self, other: "Location") -> Optional[float]:
        """Great-circle distance in metres, or None without coordinates."""
        if not (self.has_coordinates and other.has_coordinates):
            return None
        lat1, lon1 = math.radians(self.latitude), math.radians(self.longitude)
        lat2, lon2 = math.radians(other.latitude), math.radians(other.longitude)
        a = (
            math.sin((lat2 - lat1) / 2) ** 2
            + math.cos(lat1) * math.cos(lat2) * math.sin((lon2 - lon1) / 2) ** 2
        )
        return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(a))

    def formatted_address(self) -> str:
        parts = [p for p in (self.address, self.city, self.state, self.zip_code) if p]
        return ", ".join(parts) if parts else "Unknown Location"

    def display_location(self) -> str:
        if self.location_type == LocationType.specific_address:
            return self.formatted_address()
        parts = [p for p in (self.city, self.state, self.zip_code) if p]
        return ", ".join(parts) if parts else "Unknown City"
