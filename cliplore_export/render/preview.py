"""
Preview evaluation.

Evaluates a CompositionPlan at a single timeline instant with the same timing,
ordering and envelope math the exported graph uses, so an interactive preview
can draw exactly what the export will contain.
"""

from dataclasses import dataclass
from typing import Any

from cliplore_export.render.planner import CompositionPlan, PlannedOverlay, TextElement
from cliplore_export.render.text_renderer import animation_scale, fade_envelope, slide_offset_at
from cliplore_export.render.timing import seconds_to_frames
from cliplore_export.render.transform_pipeline import alpha_value, rotated_size


@dataclass(frozen=True)
class PreviewItem:
    """One visible overlay at a given instant, in paint order."""

    visual_label: str
    kind: str
    x: float
    y: float
    width: int
    height: int
    opacity: float
    scale: float
    rotation: float
    effective_z: int

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "visual_label": self.visual_label,
            "kind": self.kind,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "opacity": self.opacity,
            "scale": self.scale,
            "rotation": self.rotation,
            "effective_z": self.effective_z,
        }


class PreviewState:
    """Per-instant view of a plan."""

    def __init__(self, plan: CompositionPlan):
        self.plan = plan

    def frame_at(self, t: float) -> int:
        return seconds_to_frames(t, self.plan.fps)

    def is_active(self, overlay: PlannedOverlay, t: float) -> bool:
        return overlay.start <= t <= overlay.end

    def evaluate(self, overlay: PlannedOverlay, t: float) -> PreviewItem:
        element = overlay.element
        if isinstance(element, TextElement):
            transform = element.overlay.transform
            kind = overlay.animation_kind
            opacity = alpha_value(transform.opacity) * fade_envelope(
                t, element.start, element.end, element.fade_in, element.fade_out
            )
            scale = animation_scale(kind, t, element.start, element.fade_in)
            offset = slide_offset_at(kind, t, element.start, element.fade_in, self.plan.slide_distance)
        else:
            transform = element.clip.transform
            opacity = alpha_value(transform.opacity)
            scale = 1.0
            offset = 0.0

        # The overlay is centred on its bounds after scaling and rotation grow or shrink it
        width, height = rotated_size(overlay.bounds_width * scale, overlay.bounds_height * scale, transform.rotation)
        return PreviewItem(
            visual_label=overlay.visual_label,
            kind=overlay.kind,
            x=overlay.x + (overlay.bounds_width - width) / 2,
            y=overlay.y + (overlay.bounds_height - height) / 2 + offset,
            width=round(width),
            height=round(height),
            opacity=opacity,
            scale=scale,
            rotation=transform.rotation,
            effective_z=overlay.effective_z,
        )

    def visible_at(self, t: float) -> list[PreviewItem]:
        """Visible overlays at time t, bottom-most first."""
        return [self.evaluate(ov, t) for ov in self.plan.overlays if self.is_active(ov, t)]
