from typing import Any, Dict

from .errors import ValidationError
from .models import ContactHours, DeliveryProfile, clamp, parse_int
from .vocabulary import is_allowed

HOURS_PER_CREDIT = 25

# (upper bound inclusive, label); anything above the last bound is the final label
DELIVERY_MODE_BUCKETS = (
    (10, "Fully On-Campus"),
    (30, "Predominantly On-Campus"),
    (70, "Blended"),
    (90, "Predominantly Online"),
)
DELIVERY_MODE_TOP = "Fully Online"

SYNC_BUCKETS = (
    (10, "Fully Synchronous"),
    (30, "Mostly Synchronous"),
    (70, "Mixed Sync/Async"),
    (90, "Mostly Asynchronous"),
)
SYNC_TOP = "Fully Asynchronous"


def _bucket(value: int, buckets, top: str) -> str:
    for bound, label in buckets:
        if value <= bound:
            return label
    return top


def delivery_mode_label(value: Any) -> str:
    return _bucket(clamp(value, 0, 100, 50), DELIVERY_MODE_BUCKETS, DELIVERY_MODE_TOP)


def sync_label(value: Any) -> str:
    return _bucket(clamp(value, 0, 100, 50), SYNC_BUCKETS, SYNC_TOP)


def programme_credits(doc: Dict[str, Any]) -> int:
    return parse_int(doc.get("credits"), 0) or parse_int(doc.get("totalCredits"), 0) or 60


def total_effort_hours(doc: Dict[str, Any]) -> int:
    return programme_credits(doc) * HOURS_PER_CREDIT


def refresh_delivery_profile(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Ensure the profile exists and re-derive total effort from credits (in place)."""
    profile = doc.get("deliveryProfile")
    if not isinstance(profile, dict):
        profile = DeliveryProfile().to_doc()
        doc["deliveryProfile"] = profile
    if not isinstance(profile.get("contactHours"), dict):
        profile["contactHours"] = ContactHours().to_doc()
    profile["totalEffortHours"] = total_effort_hours(doc)
    return profile


def set_contact_hours(doc: Dict[str, Any], bucket: str, hours: Any) -> int:
    if not is_allowed("contactHours", bucket):
        raise ValidationError(f"Unknown contact hour bucket '{bucket}'")
    profile = refresh_delivery_profile(doc)
    value = clamp(hours, 0, None, 0)
    profile["contactHours"][bucket] = value
    return value


def set_sliders(doc: Dict[str, Any], delivery_mode: Any = None, sync_async: Any = None) -> Dict[str, Any]:
    profile = refresh_delivery_profile(doc)
    if delivery_mode is not None:
        profile["deliveryMode"] = clamp(delivery_mode, 0, 100, 50)
    if sync_async is not None:
        profile["syncAsync"] = clamp(sync_async, 0, 100, 50)
    return profile


def contact_summary(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Read-only view of the delivery profile with derived totals and labels."""
    profile = doc.get("deliveryProfile")
    if not isinstance(profile, dict):
        profile = DeliveryProfile().to_doc()
    contact = profile.get("contactHours") if isinstance(profile.get("contactHours"), dict) else {}
    contact = {k: v for k, v in contact.items() if is_allowed("contactHours", k)}
    effort = total_effort_hours(doc)
    contact_total = sum(max(0, parse_int(v, 0)) for v in contact.values())
    return {
        "deliveryMode": profile.get("deliveryMode", 50),
        "deliveryModeLabel": delivery_mode_label(profile.get("deliveryMode", 50)),
        "syncAsync": profile.get("syncAsync", 50),
        "syncLabel": sync_label(profile.get("syncAsync", 50)),
        "totalEffortHours": effort,
        "contactHours": dict(contact),
        "contactTotal": contact_total,
        "independentHours": max(0, effort - contact_total),
        "contactPercent": round(contact_total / effort * 100) if effort > 0 else 0,
    }
