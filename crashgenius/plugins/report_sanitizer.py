"""Repair provider output into the canonical report shape."""

import json
import logging
import math
from typing import Any, Dict, List, Optional

from ..models.report import (
    BOX_SCALE,
    BoundingBox,
    CrashAnalysisResult,
    DamageItem,
    Severity,
    VehicleDetails,
)

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Analysis"
DEFAULT_SUMMARY = "No summary provided."
DEFAULT_COST = "Unknown"
DEFAULT_PART = "Unknown part"
DEFAULT_DAMAGE_TYPE = "Unknown"
DEFAULT_ACTION = "Inspect"
DEFAULT_SEVERITY = Severity.MEDIUM
UNKNOWN = "Unknown"


class ReportSanitizer:
    """
    The single choke point between provider output and the rest of the system.

    Whatever a provider returns (schema-conformant JSON, partial objects,
    wrong types, a bare string) comes out as a structurally valid
    CrashAnalysisResult. Adapters never do their own defaulting.
    """

    def sanitize(self, raw: Any) -> CrashAnalysisResult:
        """
        Normalize raw provider output. Never raises.

        Args:
            raw: Decoded JSON (usually a dict), a JSON string, or an existing report

        Returns:
            CrashAnalysisResult with every container field present
        """
        data = self._coerce_mapping(raw)
        repaired: List[str] = []

        title = self._text(data.get("title"), DEFAULT_TITLE, "title", repaired)
        summary = self._text(data.get("summary"), DEFAULT_SUMMARY, "summary", repaired)
        cost = self._text(data.get("estimatedRepairCostRange"), DEFAULT_COST, "estimatedRepairCostRange", repaired)

        vehicles_raw = data.get("vehiclesInvolved")
        if isinstance(vehicles_raw, list):
            vehicles = [v.strip() for v in vehicles_raw if isinstance(v, str) and v.strip()]
        else:
            vehicles = []
            repaired.append("vehiclesInvolved")

        identified_raw = data.get("identifiedVehicles")
        identified: Optional[List[VehicleDetails]] = None
        if isinstance(identified_raw, list):
            identified = [
                self._vehicle(entry) for entry in identified_raw if isinstance(entry, dict)
            ]

        damage_raw = data.get("damagePoints")
        damage_points: List[DamageItem] = []
        if isinstance(damage_raw, list):
            for entry in damage_raw:
                if not isinstance(entry, dict):
                    logger.warning(f"Dropping non-object damage point: {type(entry).__name__}")
                    continue
                damage_points.append(self._damage_item(entry))
        else:
            repaired.append("damagePoints")

        if repaired:
            logger.info(f"Sanitizer filled defaults for: {', '.join(repaired)}")

        return CrashAnalysisResult(
            title=title,
            summary=summary,
            vehicles_involved=vehicles,
            estimated_repair_cost_range=cost,
            damage_points=damage_points,
            identified_vehicles=identified,
        )

    def _coerce_mapping(self, raw: Any) -> Dict[str, Any]:
        if isinstance(raw, CrashAnalysisResult):
            return raw.to_dict()
        if isinstance(raw, (str, bytes)):
            try:
                raw = json.loads(raw)
            except (ValueError, UnicodeDecodeError, RecursionError):
                logger.warning("Sanitizer received text that is not JSON; using defaults")
                return {}
        if isinstance(raw, dict):
            return raw
        logger.warning(f"Sanitizer received {type(raw).__name__}; using defaults")
        return {}

    @staticmethod
    def _text(value: Any, default: str, name: str, repaired: List[str]) -> str:
        if isinstance(value, str) and value.strip():
            return value.strip()
        repaired.append(name)
        return default

    @staticmethod
    def _field(value: Any, default: str) -> str:
        if isinstance(value, str) and value.strip():
            return value.strip()
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            try:
                return str(value)
            except ValueError:
                # int above the interpreter's digit limit
                return default
        return default

    def _vehicle(self, entry: Dict[str, Any]) -> VehicleDetails:
        return VehicleDetails(
            make=self._field(entry.get("make"), UNKNOWN),
            model=self._field(entry.get("model"), UNKNOWN),
            year=self._field(entry.get("year"), UNKNOWN),
            license_plate=self._field(entry.get("licensePlate"), UNKNOWN),
            color=self._field(entry.get("color"), UNKNOWN),
        )

    def _damage_item(self, entry: Dict[str, Any]) -> DamageItem:
        severity = Severity.parse(entry.get("severity"))
        if severity is None:
            logger.debug(f"Unknown severity {entry.get('severity')!r}, using {DEFAULT_SEVERITY.value}")
            severity = DEFAULT_SEVERITY

        return DamageItem(
            part_name=self._field(entry.get("partName"), DEFAULT_PART),
            damage_type=self._field(entry.get("damageType"), DEFAULT_DAMAGE_TYPE),
            severity=severity,
            description=self._field(entry.get("description"), ""),
            recommended_action=self._field(entry.get("recommendedAction"), DEFAULT_ACTION),
            bounding_box=self._bounding_box(entry.get("boundingBox")),
        )

    @staticmethod
    def _bounding_box(value: Any) -> Optional[BoundingBox]:
        """Keep only four finite numbers; clamp into 0-1000 and order each pair."""
        if not isinstance(value, (list, tuple)) or len(value) != 4:
            return None

        numbers = []
        for component in value:
            if isinstance(component, bool) or not isinstance(component, (int, float)):
                return None
            if isinstance(component, float) and not math.isfinite(component):
                return None
            numbers.append(min(max(component, 0), BOX_SCALE))

        y_min, x_min, y_max, x_max = numbers
        return BoundingBox(
            y_min=min(y_min, y_max),
            x_min=min(x_min, x_max),
            y_max=max(y_min, y_max),
            x_max=max(x_min, x_max),
        )


_default_sanitizer = ReportSanitizer()


def sanitize(raw: Any) -> CrashAnalysisResult:
    """Module-level shortcut for ReportSanitizer().sanitize(raw)."""
    return _default_sanitizer.sanitize(raw)
