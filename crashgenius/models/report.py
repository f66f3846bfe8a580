"""Canonical crash report data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


PLATE_SENTINELS = ("Unknown", "Not Visible")

# Bounding boxes use a fixed 0-1000 scale on both axes
BOX_SCALE = 1000


class Severity(Enum):
    """Closed, ordered damage severity scale used for styling and triage."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)

    @classmethod
    def parse(cls, value: Any) -> Optional["Severity"]:
        """Case-insensitive lookup; None for anything outside the scale."""
        if isinstance(value, Severity):
            return value
        if not isinstance(value, str):
            return None
        lowered = value.strip().lower()
        for member in cls:
            if member.value.lower() == lowered:
                return member
        return None

    def __lt__(self, other: "Severity") -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank


_SEVERITY_ORDER = [Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL]


@dataclass(frozen=True)
class VehicleDetails:
    """
    A vehicle identified in the evidence.

    Attributes:
        make: Manufacturer
        model: Model name
        year: Model year, possibly a range ("2018-2020")
        license_plate: OCR'd plate or one of the sentinels "Unknown"/"Not Visible"
        color: Body color
    """
    make: str
    model: str
    year: str
    license_plate: str
    color: str

    @property
    def plate_visible(self) -> bool:
        return bool(self.license_plate) and self.license_plate not in PLATE_SENTINELS

    def label(self) -> str:
        parts = [self.year, self.make, self.model]
        return " ".join(part for part in parts if part and part != "Unknown") or "Unknown vehicle"

    def to_dict(self) -> Dict[str, str]:
        return {
            "make": self.make,
            "model": self.model,
            "year": self.year,
            "licensePlate": self.license_plate,
            "color": self.color,
        }


@dataclass(frozen=True)
class RenderRegion:
    """Bounding box expressed in percent of the reference image."""
    top: float
    left: float
    height: float
    width: float


@dataclass(frozen=True)
class BoundingBox:
    """Damage rectangle [yMin, xMin, yMax, xMax] on the 0-1000 scale."""
    y_min: float
    x_min: float
    y_max: float
    x_max: float

    def to_region(self) -> RenderRegion:
        percent = BOX_SCALE / 100
        return RenderRegion(
            top=self.y_min / percent,
            left=self.x_min / percent,
            height=(self.y_max - self.y_min) / percent,
            width=(self.x_max - self.x_min) / percent,
        )

    def to_list(self) -> List[float]:
        return [self.y_min, self.x_min, self.y_max, self.x_max]

    @classmethod
    def from_list(cls, values: List[float]) -> "BoundingBox":
        y_min, x_min, y_max, x_max = values
        return cls(y_min=y_min, x_min=x_min, y_max=y_max, x_max=x_max)


@dataclass(frozen=True)
class DamageItem:
    """
    A single damaged part.

    Attributes:
        part_name: Damaged component ("Rear bumper")
        damage_type: Free text ("Dent", "Crack", "Misalignment")
        severity: Severity on the closed Low..Critical scale
        description: Detailed description of the damage
        recommended_action: Repair / Replace / Paint ...
        bounding_box: Location on the first evidence image, if localized
    """
    part_name: str
    damage_type: str
    severity: Severity
    description: str
    recommended_action: str
    bounding_box: Optional[BoundingBox] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "partName": self.part_name,
            "damageType": self.damage_type,
            "severity": self.severity.value,
            "description": self.description,
            "recommendedAction": self.recommended_action,
        }
        if self.bounding_box is not None:
            data["boundingBox"] = self.bounding_box.to_list()
        return data


@dataclass(frozen=True)
class CrashAnalysisResult:
    """
    Canonical damage report.

    vehicles_involved and damage_points are always lists; identified_vehicles
    is None when the provider did not supply it, and the UI switches rendering
    mode on that distinction.
    """
    title: str
    summary: str
    vehicles_involved: List[str] = field(default_factory=list)
    estimated_repair_cost_range: str = "Unknown"
    damage_points: List[DamageItem] = field(default_factory=list)
    identified_vehicles: Optional[List[VehicleDetails]] = None

    def display_vehicles(self) -> List[str]:
        """Vehicle labels, preferring the richer identified_vehicles form."""
        if self.identified_vehicles is not None:
            return [vehicle.label() for vehicle in self.identified_vehicles]
        return list(self.vehicles_involved)

    def damage_points_by_severity(self) -> List[DamageItem]:
        """Damage points in triage order, Critical first."""
        return sorted(self.damage_points, key=lambda item: item.severity.rank, reverse=True)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "title": self.title,
            "summary": self.summary,
            "vehiclesInvolved": list(self.vehicles_involved),
        }
        if self.identified_vehicles is not None:
            data["identifiedVehicles"] = [vehicle.to_dict() for vehicle in self.identified_vehicles]
        data["estimatedRepairCostRange"] = self.estimated_repair_cost_range
        data["damagePoints"] = [item.to_dict() for item in self.damage_points]
        return data
