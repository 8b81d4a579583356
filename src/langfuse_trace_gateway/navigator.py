"""Resolve an observation selector against a fetched trace."""

from typing import Any

from langfuse_trace_gateway.models import (
    AmbiguousMatches,
    IndexOutOfRange,
    NavigationResult,
    NoMatches,
    ObservationRef,
    Selector,
    SingleObservation,
)


def _single(observations: list[dict[str, Any]], index: int) -> SingleObservation:
    obs = observations[index]
    return SingleObservation(index=index, input=obs.get("input"), output=obs.get("output"))


def select_by_index(observations: list[dict[str, Any]], index: int) -> SingleObservation | IndexOutOfRange:
    if 0 <= index < len(observations):
        return _single(observations, index)
    return IndexOutOfRange(index=index, valid_range=(0, len(observations) - 1))


def select_by_name(
    observations: list[dict[str, Any]], name: str
) -> SingleObservation | AmbiguousMatches | NoMatches:
    """Exact, case-sensitive name match, keeping each hit's original index."""
    matches = [i for i, obs in enumerate(observations) if obs.get("name") == name]
    if not matches:
        return NoMatches(name=name)
    if len(matches) == 1:
        return _single(observations, matches[0])
    return AmbiguousMatches(
        name=name,
        matches=[ObservationRef(index=i, name=name) for i in matches],
    )


def resolve(observations: list[dict[str, Any]], selector: Selector) -> NavigationResult:
    if selector.kind == "index":
        return select_by_index(observations, int(selector.value))
    return select_by_name(observations, str(selector.value))
