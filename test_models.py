"""Tests for domain models, report hashing and the model catalogue."""

import hashlib
import json
from datetime import datetime, timezone

import pytest

from crashgenius.models import (
    AVAILABLE_MODELS,
    BoundingBox,
    DamageItem,
    Evidence,
    ImageMetadata,
    Language,
    ProviderKind,
    ProviderSelector,
    Severity,
    find_model,
)
from crashgenius.plugins.report_sanitizer import sanitize
from crashgenius.utils.hashing import canonical_json, report_hash


def test_bounding_box_maps_to_percent_region():
    region = BoundingBox.from_list([100, 200, 300, 400]).to_region()

    assert region.top == 10
    assert region.left == 20
    assert region.height == 20
    assert region.width == 20


def test_severity_is_ordered_and_parsed_case_insensitively():
    assert Severity.LOW < Severity.MEDIUM < Severity.HIGH < Severity.CRITICAL
    assert Severity.parse("hIgH") is Severity.HIGH
    assert Severity.parse("Catastrophic") is None
    assert Severity.parse(3) is None


def test_damage_points_by_severity_puts_critical_first_and_is_stable():
    def item(name, severity):
        return DamageItem(name, "Dent", severity, "", "Repair")

    report = sanitize({})
    points = [
        item("mirror", Severity.LOW),
        item("door", Severity.HIGH),
        item("airbag", Severity.CRITICAL),
        item("fender", Severity.HIGH),
    ]
    ordered = type(report)(title="t", summary="s", damage_points=points).damage_points_by_severity()

    assert [p.part_name for p in ordered] == ["airbag", "door", "fender", "mirror"]


def test_display_vehicles_prefers_identified_vehicles(report_payload):
    report = sanitize(report_payload)
    assert report.display_vehicles() == ["2018-2020 Toyota Camry"]

    legacy = sanitize({"vehiclesInvolved": ["Toyota Camry", "Honda Civic"]})
    assert legacy.display_vehicles() == ["Toyota Camry", "Honda Civic"]


def test_report_dict_omits_absent_identified_vehicles():
    data = sanitize({"title": "X"}).to_dict()

    assert "identifiedVehicles" not in data
    assert list(data) == ["title", "summary", "vehiclesInvolved", "estimatedRepairCostRange", "damagePoints"]


def test_evidence_round_trips_through_wire_shape(photo_evidence):
    data = photo_evidence.to_dict()
    assert data["modifiedAt"] == int(datetime(2024, 5, 1, tzinfo=timezone.utc).timestamp() * 1000)

    restored = Evidence.from_dict(data)
    assert restored == photo_evidence
    assert restored.raw_bytes() == b"\xff\xd8\xff\xe0fake-jpeg"
    assert restored.base64_data == photo_evidence.payload.split(",", 1)[1]
    assert restored.is_image


def test_evidence_with_metadata_serializes_camel_case(photo_evidence):
    metadata = ImageMetadata(make="Canon", f_number="f/1.8", exposure_time="1/60", iso="200")
    evidence = Evidence(
        name=photo_evidence.name,
        mime_type=photo_evidence.mime_type,
        payload=photo_evidence.payload,
        size_bytes=photo_evidence.size_bytes,
        modified_at=photo_evidence.modified_at,
        image_metadata=metadata,
    )

    assert evidence.to_dict()["imageMetadata"] == {
        "make": "Canon",
        "fNumber": "f/1.8",
        "exposureTime": "1/60",
        "iso": "200",
    }
    assert Evidence.from_dict(evidence.to_dict()).image_metadata == metadata


def test_invalid_payload_raises_value_error(photo_evidence):
    broken = Evidence.from_dict({**photo_evidence.to_dict(), "payload": "data:image/jpeg;base64,@@@"})
    with pytest.raises(ValueError):
        broken.raw_bytes()


def test_language_and_provider_parsing():
    assert Language.parse("RU") is Language.RU
    assert Language.RU.display_name == "Russian"
    assert ProviderKind.parse("mistral") is ProviderKind.MISTRAL
    with pytest.raises(ValueError):
        Language.parse("de")
    with pytest.raises(ValueError):
        ProviderKind.parse("openai")


def test_selector_repr_hides_api_key():
    selector = ProviderSelector(ProviderKind.MISTRAL, "pixtral-large-latest", api_key="secret-key-123")
    assert "secret-key-123" not in repr(selector)


def test_model_catalogue_defaults_to_gemini():
    defaults = [model for model in AVAILABLE_MODELS if model.badge == "Default"]

    assert [model.id for model in defaults] == ["gemini-3-pro-preview"]
    assert find_model("pixtral-large-latest").provider is ProviderKind.MISTRAL
    assert find_model("gpt-4") is None
    selector = find_model("mistral-large-latest").selector("key")
    assert selector.kind is ProviderKind.MISTRAL and selector.api_key == "key"


def test_report_hash_is_sha256_of_compact_json(report_payload):
    report = sanitize(report_payload)
    expected = hashlib.sha256(
        json.dumps(report.to_dict(), ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    ).hexdigest()

    assert report_hash(report) == expected
    assert report_hash(report.to_dict()) == expected
    assert len(expected) == 64


def test_report_hash_is_deterministic_and_content_sensitive(report_payload):
    first = report_hash(sanitize(report_payload))
    second = report_hash(sanitize(report_payload))
    changed = report_hash(sanitize({**report_payload, "title": "Another case"}))

    assert first == second
    assert first != changed


def test_canonical_json_keeps_non_ascii_text():
    text = canonical_json(sanitize({"title": "Удар спереди"}))
    assert "Удар спереди" in text
    assert ", " not in text
