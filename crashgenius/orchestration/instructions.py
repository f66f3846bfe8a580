"""Prompts and output schema shared by every provider adapter."""

import json
from typing import Any, Dict, List

from ..models.evidence import Evidence, Language
from ..models.report import CrashAnalysisResult


_VEHICLE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "make": {"type": "STRING"},
        "model": {"type": "STRING"},
        "year": {"type": "STRING", "description": "Model year or range, e.g. '2018-2020'"},
        "licensePlate": {
            "type": "STRING",
            "description": "License plate read from the image, or 'Unknown' / 'Not Visible'",
        },
        "color": {"type": "STRING"},
    },
    "required": ["make", "model", "year", "licensePlate", "color"],
}

_DAMAGE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "partName": {"type": "STRING"},
        "damageType": {"type": "STRING", "description": "Type of damage (Dent, Scratch, Smash, Misalignment)"},
        "severity": {"type": "STRING", "enum": ["Low", "Medium", "High", "Critical"]},
        "description": {"type": "STRING", "description": "Detailed description of the damage"},
        "recommendedAction": {"type": "STRING", "description": "Repair vs Replace vs Paint"},
        "boundingBox": {
            "type": "ARRAY",
            "items": {"type": "INTEGER"},
            "description": "[ymin, xmin, ymax, xmax] on a 0-1000 scale of the FIRST evidence image",
        },
    },
    "required": ["partName", "damageType", "severity", "description", "recommendedAction"],
}

CRASH_REPORT_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "title": {
            "type": "STRING",
            "description": "A concise title for the accident case (e.g. 'Frontal Impact on Toyota Camry')",
        },
        "summary": {
            "type": "STRING",
            "description": "A professional summary of the visible damage and accident context",
        },
        "vehiclesInvolved": {
            "type": "ARRAY",
            "items": {"type": "STRING"},
            "description": "List of identified vehicle makes/models involved",
        },
        "identifiedVehicles": {
            "type": "ARRAY",
            "items": _VEHICLE_SCHEMA,
            "description": "Detailed vehicle identification, one entry per vehicle",
        },
        "estimatedRepairCostRange": {
            "type": "STRING",
            "description": "Rough estimated cost range (e.g. '$1500 - $2500' or 'Total Loss')",
        },
        "damagePoints": {"type": "ARRAY", "items": _DAMAGE_SCHEMA},
    },
    "required": ["title", "summary", "vehiclesInvolved", "estimatedRepairCostRange", "damagePoints"],
}


def build_analysis_instruction(language: Language, evidence: List[Evidence]) -> str:
    """
    Build the task instruction sent with every report request.

    Args:
        language: Language for titles, summaries and descriptions
        evidence: Evidence items in upload order

    Returns:
        Natural-language instruction text
    """
    lang_name = language.display_name
    reference = evidence[0].name if evidence else "the first evidence item"

    return f"""You are an expert independent insurance adjuster and automotive engineer.
Analyze the provided evidence (which may include crash photos, PDF police reports, court documents, or insurance statements).

If an image is provided: identify the vehicles, the specific parts damaged, the severity of the impact, and recommend repair actions.
If a document is provided: extract the accident details, vehicle information, reported damages, and legal/insurance context.

Vehicle identification: for every vehicle report make, model, year (a range is fine), color, and the license plate
read from the image. Use "Unknown" when the plate cannot be determined and "Not Visible" when it is outside the frame.

Damage localization: when a damaged part is visible, give its boundingBox as [ymin, xmin, ymax, xmax] on a 0-1000
scale relative to the FIRST evidence item only ({reference}). Omit boundingBox for damage seen only in other files
or that cannot be localized.

Estimate the repair cost range based on standard US/EU labor rates (unless context suggests otherwise).

IMPORTANT: Generate the response content (titles, summaries, descriptions) in {lang_name}.
However, you MUST keep the JSON property keys (like 'damagePoints', 'partName', 'severity') exactly as specified in English.
The 'severity' value must be one of: "Low", "Medium", "High", "Critical"."""


def build_system_instruction(language: Language) -> str:
    return f"You are a helpful, professional insurance adjuster. Output all content in {language.display_name}."


def build_context_text(free_text: str) -> str:
    return f"Additional Incident/Document Context: {free_text}"


def json_schema_instruction() -> str:
    """The report schema serialized as a prompt instruction (not enforced)."""
    return (
        "Respond with a single JSON object only, no Markdown and no commentary. "
        "It must follow this schema (types are upper-case OpenAPI names):\n"
        f"{json.dumps(CRASH_REPORT_SCHEMA, indent=2)}"
    )


def build_report_digest(report: CrashAnalysisResult) -> str:
    """Textual digest of a report used to seed chat sessions."""
    damage_lines = "\n".join(
        f"{idx}. [{item.severity.value}] {item.part_name} ({item.damage_type}) - "
        f"{item.description} -> Action: {item.recommended_action}"
        for idx, item in enumerate(report.damage_points, 1)
    ) or "None recorded."

    lines = [
        "CURRENT CRASH REPORT CONTEXT:",
        f'Case: "{report.title}"',
        f"Summary: {report.summary}",
        f"Vehicles: {', '.join(report.display_vehicles()) or 'Unknown'}",
    ]
    if report.identified_vehicles:
        plates = ", ".join(
            f"{vehicle.label()}: {vehicle.license_plate}" for vehicle in report.identified_vehicles
        )
        lines.append(f"License plates: {plates}")
    lines.append(f"Est. Cost: {report.estimated_repair_cost_range}")
    lines.append("Damage Points:")
    lines.append(damage_lines)
    return "\n".join(lines)


def build_chat_system_instruction(language: Language) -> str:
    return f"""You are a highly intelligent insurance claims expert ("CarCrashGenius Bot").
You have access to a damage analysis report generated from crash evidence (photos or docs).
Your goal is to help the user understand the damage, the repair process, potential hidden costs, and insurance claim procedures.

Response Guidelines:
- Respond strictly in {language.display_name}.
- Be objective, professional, and empathetic.
- If asked about costs, emphasize that these are estimates.
- If the user asks to "Explain the damage to..." assume "this" refers to the last context provided.
- Warn about safety if the damage looks critical (e.g., suspension, airbags)."""


EVIDENCE_INTRO = "Here is the source evidence (photos or documents)."
EVIDENCE_ACK = "I have analyzed the provided evidence. I am ready to discuss the specifics."


def report_intro(report: CrashAnalysisResult) -> str:
    return f"Here is the generated damage report:\n{build_report_digest(report)}"


def report_ack(report: CrashAnalysisResult) -> str:
    return f'Understood. I have the case file for "{report.title}". How can I assist with this claim?'
