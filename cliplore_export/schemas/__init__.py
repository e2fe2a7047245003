from cliplore_export.schemas.export import ArtifactMetadata, ExportArtifact, ExportProgress
from cliplore_export.schemas.timeline import (
    Clip,
    ClipTransform,
    Crop,
    ExportConfig,
    TextAnimation,
    TextOverlay,
    TextStyle,
    TextTransform,
    TimelineModel,
    TimelinePosition,
    Track,
    Trim,
)

__all__ = [
    "TimelineModel",
    "Track",
    "Clip",
    "ClipTransform",
    "Crop",
    "Trim",
    "TimelinePosition",
    "TextOverlay",
    "TextStyle",
    "TextAnimation",
    "TextTransform",
    "ExportConfig",
    "ArtifactMetadata",
    "ExportArtifact",
    "ExportProgress",
]
