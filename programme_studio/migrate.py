"""Upgrade UDL evidence recorded against Guidelines 2.2 to Guidelines 3.0 names."""

import copy
import logging
from typing import Any, Dict

logger = logging.getLogger(__name__)

# keys are 2.2 names only, so no key is ever a 3.0 value and re-running is a no-op
UDL_SUBLEVEL_RENAMES: Dict[str, str] = {
    "Comprehension": "BuildingKnowledge",
    "PhysicalAction": "Interaction",
    "Executive": "StrategyDevelopment",
    "Recruiting": "WelcomingIdentities",
    "Sustaining": "SustainingPersistence",
    "SelfRegulation": "EmotionalCapacity",
}


def migrate_udl_guidelines(doc: Any) -> Any:
    """Return a copy of ``doc`` with retired UDL sublevel names replaced.

    Documents without a ``modules`` list (or that are not dicts at all) come
    back unchanged. Only ``sublevel`` is rewritten; ``dimension`` and the
    evidence text are left alone, as is any item whose sublevel is not in
    the rename table.
    """
    if not isinstance(doc, dict) or not isinstance(doc.get("modules"), list):
        return doc

    out = copy.deepcopy(doc)
    for mod in out["modules"]:
        if not isinstance(mod, dict) or not isinstance(mod.get("udlEvidence"), list):
            continue
        migrated = []
        for item in mod["udlEvidence"]:
            old = item.get("sublevel") if isinstance(item, dict) else None
            if isinstance(old, str) and old in UDL_SUBLEVEL_RENAMES:
                logger.info(f"Migrated UDL: {old} -> {UDL_SUBLEVEL_RENAMES[old]}")
                item = {**item, "sublevel": UDL_SUBLEVEL_RENAMES[old]}
            migrated.append(item)
        mod["udlEvidence"] = migrated
    return out
