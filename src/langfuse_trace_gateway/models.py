"""Pydantic data models for the langfuse-trace-gateway."""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

# ------------------------------------------------------------------
# Selector
# ------------------------------------------------------------------


class Selector(BaseModel):
    """Narrows a trace request to one or more observations."""

    kind: Literal["index", "name"]
    value: int | str

    @classmethod
    def from_params(cls, index: int | None = None, name: str | None = None) -> "Selector | None":
        """Build a selector from request parameters.

        ``index`` wins when both are given; the name filter is ignored in that
        case.  An empty name counts as absent.
        """
        if index is not None:
            return cls(kind="index", value=index)
        if name:
            return cls(kind="name", value=name)
        return None


class ObservationRef(BaseModel):
    """Position and name of an observation inside a trace."""

    index: int
    name: str | None = None


# ------------------------------------------------------------------
# Trace results
# ------------------------------------------------------------------


class FullPayload(BaseModel):
    kind: Literal["full_payload"] = "full_payload"
    trace: str
    size_bytes: int

    @property
    def message(self) -> str:
        return self.trace


class StructuralSummary(BaseModel):
    """Returned instead of the trace when its serialized form is too large."""

    kind: Literal["structural_summary"] = "structural_summary"
    size_bytes: int
    threshold_bytes: int
    observations: list[ObservationRef] = Field(default_factory=list)

    @property
    def message(self) -> str:
        return (
            f"Trace data exceeds {self.threshold_bytes // 1024} KB ({self.size_bytes / 1024:.2f} KB). "
            "Returning structure summary. Use 'name' or 'index' to retrieve specific observation details."
        )


class SingleObservation(BaseModel):
    kind: Literal["single_observation"] = "single_observation"
    index: int
    input: Any = None
    output: Any = None

    @property
    def message(self) -> str:
        return f"Observation {self.index}"


class AmbiguousMatches(BaseModel):
    kind: Literal["ambiguous_matches"] = "ambiguous_matches"
    name: str
    matches: list[ObservationRef] = Field(default_factory=list)

    @property
    def message(self) -> str:
        return (
            f"Multiple observations found with name '{self.name}'. Use 'index' with one of the "
            "listed original indices to retrieve specific details."
        )


class NoMatches(BaseModel):
    kind: Literal["no_matches"] = "no_matches"
    name: str

    @property
    def message(self) -> str:
        return f"No observations found with name: {self.name}"


class IndexOutOfRange(BaseModel):
    kind: Literal["index_out_of_range"] = "index_out_of_range"
    index: int
    valid_range: tuple[int, int]

    @property
    def message(self) -> str:
        lo, hi = self.valid_range
        return f"Index {self.index} is out of bounds. Valid indices are {lo} to {hi}."


class ErrorResult(BaseModel):
    kind: Literal["error"] = "error"
    reason: Literal["remote_fetch_failed", "malformed_trace"]
    trace_id: str
    error: str
    status_code: int | None = None

    @property
    def message(self) -> str:
        return self.error


NavigationResult = SingleObservation | AmbiguousMatches | NoMatches | IndexOutOfRange

TraceResult = Annotated[
    FullPayload | StructuralSummary | SingleObservation | AmbiguousMatches | NoMatches | IndexOutOfRange | ErrorResult,
    Field(discriminator="kind"),
]


# ------------------------------------------------------------------
# Prompts
# ------------------------------------------------------------------


class PromptArgument(BaseModel):
    name: str
    required: bool = False


class PromptInfo(BaseModel):
    name: str
    arguments: list[PromptArgument] = Field(default_factory=list)


class PromptList(BaseModel):
    prompts: list[PromptInfo] = Field(default_factory=list)
    next_cursor: str | None = None


class PromptMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class CompiledPrompt(BaseModel):
    name: str
    type: Literal["chat", "text"]
    messages: list[PromptMessage] = Field(default_factory=list)


# ------------------------------------------------------------------
# Configuration
# ------------------------------------------------------------------


class GatewayConfig(BaseModel):
    """Top-level gateway configuration."""

    host: str = "0.0.0.0"
    port: int = 9100
    langfuse_host: str = "https://cloud.langfuse.com"
    public_key: str | None = None
    secret_key: str | None = None
    cache_backend: Literal["file", "sqlite", "memory"] = "file"
    cache_dir: str = "cache_data"
    db_path: str | None = None
    sync_cache_writes: bool = False
    request_timeout: float = 30.0
    log_level: str = "INFO"
