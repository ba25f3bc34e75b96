"""
Data model for the interception simulator.

Locations, threat classification and the attack descriptors handed from the
event generator to the simulation registry.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


DEFAULT_THREAT_COLOR = "#FF9800"


@dataclass(frozen=True)
class Location:
    """A named point in degrees."""
    id: str
    lat: float
    lng: float
    ip: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Location":
        return cls(
            id=str(data.get("id") or data.get("name") or ""),
            lat=float(data["lat"]),
            lng=float(data.get("lng", data.get("lon"))),
            ip=data.get("ip"),
            city=data.get("city"),
            country=data.get("country"),
        )

    def to_dict(self) -> dict:
        out = {"id": self.id, "lat": self.lat, "lng": self.lng}
        for key in ("ip", "city", "country"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        return out

    def point(self) -> dict:
        """Bare position payload."""
        return {"lat": self.lat, "lng": self.lng}


class ThreatLevel(Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @classmethod
    def parse(cls, value) -> Optional["ThreatLevel"]:
        """Case-insensitive lookup by label; None when unknown."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for level in cls:
            if level.value.lower() == text:
                return level
        return None


@dataclass(frozen=True)
class ThreatProfile:
    """Selection weight and display color for a threat level."""
    level: ThreatLevel
    weight: float
    color: str


DEFAULT_THREAT_PROFILES = (
    ThreatProfile(ThreatLevel.LOW, 50, "#00C853"),
    ThreatProfile(ThreatLevel.MEDIUM, 30, "#FFEB3B"),
    ThreatProfile(ThreatLevel.HIGH, 15, "#FF9800"),
    ThreatProfile(ThreatLevel.CRITICAL, 5, "#D50000"),
)

DEFAULT_ATTACK_TYPES = ("DDoS", "Brute Force", "SQL Injection", "Port Scan")


@dataclass(frozen=True)
class HistoricalAttack:
    """One row of the replay queue."""
    id: str
    source: Location
    target: Location
    threat_level: str
    attack_type: str
    timestamp: str = ""
    signature: Optional[str] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class AttackDescriptor:
    """A generated or replayed attack. Read-only once created."""
    id: str
    attack_type: str
    source: Location
    target: Location
    threat_level: ThreatLevel
    color: str
    total_distance: float  # meters
    travel_time_ms: float
    timestamp: int  # epoch ms
    extras: dict = field(default_factory=dict)  # historicalId, signature, category

    def to_event(self) -> dict:
        """Payload for the attack-event message."""
        return {
            "id": self.id,
            "attackType": self.attack_type,
            "source": self.source.to_dict(),
            "target": self.target.to_dict(),
            "threatLevel": self.threat_level.value,
            "color": self.color,
            "totalDistance": self.total_distance,
            "attackTravelTimeMs": self.travel_time_ms,
            "timestamp": self.timestamp,
            **self.extras,
        }
