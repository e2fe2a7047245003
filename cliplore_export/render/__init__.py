from cliplore_export.render.backend import FFmpegBackend, RenderBackend
from cliplore_export.render.gpu_backend import GPUBackend
from cliplore_export.render.graph_compiler import CompiledProgram, GraphCompiler
from cliplore_export.render.pipeline import ExportOrchestrator, ExportState
from cliplore_export.render.planner import CompositingPlanner, CompositionPlan, plan_composition
from cliplore_export.render.preview import PreviewState

__all__ = [
    "ExportOrchestrator",
    "ExportState",
    "CompositingPlanner",
    "CompositionPlan",
    "plan_composition",
    "GraphCompiler",
    "CompiledProgram",
    "RenderBackend",
    "FFmpegBackend",
    "GPUBackend",
    "PreviewState",
]
