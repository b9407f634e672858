"""Coordinator for component selection.

``select_component`` is stateless: everything it needs arrives in the
:class:`SelectionInput`. ``select_components_for_page`` is the only place
that carries history from one section to the next.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, List, Sequence

from ..exceptions import ConfigurationError
from . import features as features_module
from . import rank as rank_module
from .config import SelectorConfig, load_config
from .registry import ComponentRegistry
from .text import parse_content_count
from .types import PageSelection, PageSelectionState, Section, SelectionInput, SelectionResult

logger = logging.getLogger(__name__)

OVERRIDE_SCORE = 100


def rank_components(
    request: SelectionInput,
    registry: ComponentRegistry,
    config: SelectorConfig | None = None,
) -> List[SelectionResult]:
    """Score every registered component and return them best first."""

    selector_config = config or load_config(None)
    if not len(registry):
        raise ConfigurationError("Cannot select a component: the registry is empty.")

    content_count = request.content_count
    if content_count is None:
        content_count = parse_content_count(
            f"{request.section_name} {request.section_description or ''}",
            selector_config.count_nouns,
        )

    scored: List[SelectionResult] = []
    for component in registry:
        scores = features_module.compute_scores(component, request, content_count, selector_config)
        scored.append(
            SelectionResult(
                component=component,
                score=rank_module.total_score(scores),
                scores=scores,
            )
        )
    return rank_module.order_results(scored, selector_config)


def select_component(
    request: SelectionInput,
    registry: ComponentRegistry,
    config: SelectorConfig | None = None,
) -> SelectionResult:
    """Return the best component for one section, honouring overrides."""

    if not len(registry):
        raise ConfigurationError("Cannot select a component: the registry is empty.")

    if request.component_override:
        override = registry.get(request.component_override)
        if override is not None:
            return SelectionResult(
                component=override,
                score=OVERRIDE_SCORE,
                scores={"override": OVERRIDE_SCORE},
                overridden=True,
                reason="explicit override",
            )
        logger.debug("Ignoring unknown component override %r", request.component_override)

    selector_config = config or load_config(None)
    best = rank_components(request, registry, selector_config)[0]
    return replace(best, reason=rank_module.score_reason(best.scores, selector_config))


def select_components_for_page(
    sections: Sequence[Section],
    registry: ComponentRegistry,
    business_type: str = "",
    used_component_ids: Iterable[str] = (),
    config: SelectorConfig | None = None,
) -> List[PageSelection]:
    """Select a component for each section, in the order given.

    ``used_component_ids`` seeds the page history (for example components
    already used on other pages); the caller's sequence is copied, never
    mutated.
    """

    selector_config = config or load_config(None)
    state = PageSelectionState(used_component_ids=list(used_component_ids))
    total = len(sections)
    results: List[PageSelection] = []

    for index, section in enumerate(sections):
        request = SelectionInput(
            section_type=section.section_type or "content",
            section_name=section.name or "",
            section_description=section.description or "",
            business_type=business_type or "",
            content_count=section.content_count,
            section_index=index,
            total_sections=total,
            used_component_ids=tuple(state.used_component_ids),
            previous_component_id=state.previous_component_id,
            component_override=section.component_override,
        )
        result = select_component(request, registry, selector_config)
        results.append(
            PageSelection(
                section=section,
                component=result.component,
                score=result.score,
                scores=result.scores,
                overridden=result.overridden,
                reason=result.reason,
            )
        )
        state.record(result.component.id)

    return results


class ComponentSelector:
    """Selector bound to an explicitly constructed registry and config."""

    def __init__(self, registry: ComponentRegistry, config: SelectorConfig | None = None) -> None:
        if not len(registry):
            raise ConfigurationError("ComponentSelector requires a non-empty registry.")
        self.registry = registry
        self.config = config or load_config(None)

    def select(self, request: SelectionInput) -> SelectionResult:
        return select_component(request, self.registry, self.config)

    def rank(self, request: SelectionInput) -> List[SelectionResult]:
        return rank_components(request, self.registry, self.config)

    def select_page(
        self,
        sections: Sequence[Section],
        business_type: str = "",
        used_component_ids: Iterable[str] = (),
    ) -> List[PageSelection]:
        return select_components_for_page(
            sections,
            self.registry,
            business_type=business_type,
            used_component_ids=used_component_ids,
            config=self.config,
        )
