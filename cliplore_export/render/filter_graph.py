"""
Typed filter graph for FFmpeg's -filter_complex.

Nodes are added through FilterGraphBuilder, which owns label bookkeeping:
every output label is unique, every referenced label must already exist, and
every label is consumed exactly once. Because a node may only reference labels
defined before it, the resulting graph is acyclic by construction.
"""

from dataclasses import dataclass, field


class FilterGraphError(ValueError):
    """Raised when a node would break label uniqueness or ordering."""


@dataclass(frozen=True)
class Filter:
    """One FFmpeg filter, e.g. ``Filter("scale", "1920:1080")``."""

    name: str
    args: str = ""

    def serialize(self) -> str:
        return f"{self.name}={self.args}" if self.args else self.name


@dataclass(frozen=True)
class InputSpec:
    """An -i input with the options that must precede it."""

    path: str
    options: tuple[str, ...] = ()

    def to_args(self) -> list[str]:
        return [*self.options, "-i", self.path]


def _chain(filters: tuple[Filter, ...]) -> str:
    return ",".join(f.serialize() for f in filters)


@dataclass(frozen=True)
class SourceNode:
    """Generator node with no inputs (e.g. a solid colour canvas)."""

    filters: tuple[Filter, ...]
    output: str

    @property
    def inputs(self) -> tuple[str, ...]:
        return ()

    def serialize(self) -> str:
        return f"{_chain(self.filters)}[{self.output}]"


@dataclass(frozen=True)
class FilterNode:
    """Linear filter chain over one stream."""

    input: str
    filters: tuple[Filter, ...]
    output: str

    @property
    def inputs(self) -> tuple[str, ...]:
        return (self.input,)

    def serialize(self) -> str:
        return f"[{self.input}]{_chain(self.filters)}[{self.output}]"


@dataclass(frozen=True)
class OverlayNode:
    """Composite ``top`` onto ``base`` at (x, y) while ``enable`` holds."""

    base: str
    top: str
    x: str
    y: str
    enable: str
    output: str

    @property
    def inputs(self) -> tuple[str, ...]:
        return (self.base, self.top)

    def serialize(self) -> str:
        return (
            f"[{self.base}][{self.top}]overlay=x='{self.x}':y='{self.y}'"
            f":enable='{self.enable}'[{self.output}]"
        )


@dataclass(frozen=True)
class MixNode:
    """Unnormalized N-way audio sum."""

    sources: tuple[str, ...]
    output: str

    @property
    def inputs(self) -> tuple[str, ...]:
        return self.sources

    def serialize(self) -> str:
        pads = "".join(f"[{s}]" for s in self.sources)
        if len(self.sources) == 1:
            return f"{pads}anull[{self.output}]"
        return f"{pads}amix=inputs={len(self.sources)}:duration=longest:normalize=0[{self.output}]"


Node = SourceNode | FilterNode | OverlayNode | MixNode


@dataclass(frozen=True)
class FilterGraph:
    """A finished, validated graph."""

    inputs: tuple[InputSpec, ...]
    nodes: tuple[Node, ...]
    video_output: str
    audio_output: str | None = None

    def serialize(self) -> str:
        return ";\n".join(node.serialize() for node in self.nodes)

    def input_args(self) -> list[str]:
        args: list[str] = []
        for spec in self.inputs:
            args.extend(spec.to_args())
        return args


@dataclass
class FilterGraphBuilder:
    """Accumulates inputs and nodes, enforcing label discipline as it goes."""

    inputs: list[InputSpec] = field(default_factory=list)
    nodes: list[Node] = field(default_factory=list)
    _defined: set[str] = field(default_factory=set)
    _consumed: set[str] = field(default_factory=set)

    def add_input(self, spec: InputSpec) -> int:
        """Register an -i input and return its index."""
        self.inputs.append(spec)
        return len(self.inputs) - 1

    def stream(self, input_index: int, kind: str) -> str:
        """Label for a demuxed input stream, e.g. ``0:v``."""
        if not 0 <= input_index < len(self.inputs):
            raise FilterGraphError(f"Unknown input index: {input_index}")
        if kind not in ("v", "a"):
            raise FilterGraphError(f"Unknown stream kind: {kind}")
        return f"{input_index}:{kind}"

    def _is_input_stream(self, label: str) -> bool:
        index, sep, kind = label.partition(":")
        return bool(sep) and index.isdigit() and int(index) < len(self.inputs) and kind in ("v", "a")

    def _consume(self, label: str) -> None:
        if self._is_input_stream(label):
            return
        if label not in self._defined:
            raise FilterGraphError(f"Label [{label}] is referenced before it is defined")
        if label in self._consumed:
            raise FilterGraphError(f"Label [{label}] is consumed more than once")
        self._consumed.add(label)

    def _define(self, label: str) -> None:
        if not label or ":" in label or "[" in label or "]" in label:
            raise FilterGraphError(f"Invalid label: {label!r}")
        if label in self._defined:
            raise FilterGraphError(f"Duplicate label: [{label}]")
        self._defined.add(label)

    def add(self, node: Node) -> str:
        """Append a node and return its output label."""
        for label in node.inputs:
            self._consume(label)
        self._define(node.output)
        self.nodes.append(node)
        return node.output

    def source(self, filters: list[Filter], output: str) -> str:
        return self.add(SourceNode(filters=tuple(filters), output=output))

    def chain(self, input_label: str, filters: list[Filter], output: str) -> str:
        if not filters:
            filters = [Filter("null")]
        return self.add(FilterNode(input=input_label, filters=tuple(filters), output=output))

    def overlay(self, base: str, top: str, *, x: str, y: str, enable: str, output: str) -> str:
        return self.add(OverlayNode(base=base, top=top, x=x, y=y, enable=enable, output=output))

    def mix(self, sources: list[str], output: str) -> str:
        if not sources:
            raise FilterGraphError("Cannot mix zero audio streams")
        return self.add(MixNode(sources=tuple(sources), output=output))

    def build(self, video_output: str, audio_output: str | None = None) -> FilterGraph:
        """Freeze the graph; mapped outputs count as consumers."""
        for label in (video_output, audio_output):
            if label is not None:
                self._consume(label)
        dangling = sorted(self._defined - self._consumed)
        if dangling:
            raise FilterGraphError(f"Unconsumed labels: {', '.join(dangling)}")
        return FilterGraph(
            inputs=tuple(self.inputs),
            nodes=tuple(self.nodes),
            video_output=video_output,
            audio_output=audio_output,
        )
