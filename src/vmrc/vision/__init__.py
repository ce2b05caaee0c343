"""Vision-model action planning.

Public API:
    VisionPlanner -- Screenshot + goal -> VisionActionPlan
    parse_vision_plan -- Model text -> VisionActionPlan (with salvage)
"""

from vmrc.vision.parsing import (
    VisionError,
    VisionParseError,
    extract_json_text,
    parse_vision_plan,
    salvage_actions,
)
from vmrc.vision.planner import (
    DEFAULT_SYSTEM_PROMPT,
    VisionPlanner,
    VisionRequestError,
    VisionTimeoutError,
    resolve_base_url,
)

__all__ = [
    "DEFAULT_SYSTEM_PROMPT",
    "VisionError",
    "VisionParseError",
    "VisionPlanner",
    "VisionRequestError",
    "VisionTimeoutError",
    "extract_json_text",
    "parse_vision_plan",
    "resolve_base_url",
    "salvage_actions",
]
