"""Step URLs and next/previous links."""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from formwizard.services.step_graph import STEP_PLACEHOLDER, StepGraph


class StepUrlResolver:
    """Substitutes a step identifier into a route template."""

    def __init__(self, route: str, root_path: str = ""):
        self.route = route
        self.root_path = root_path.rstrip("/")

    def url_for(self, step_id: str) -> str:
        return self.root_path + self.route.replace(STEP_PLACEHOLDER, quote(step_id, safe=""))


@dataclass(frozen=True)
class NavigationResult:
    step_next: Optional[str]
    step_prev: Optional[str]
    step_current_name: str


def navigation(graph: StepGraph, position: int, resolver: StepUrlResolver) -> NavigationResult:
    nxt = graph.next(position)
    prev = graph.prev(position)
    return NavigationResult(
        step_next=resolver.url_for(nxt.step) if nxt else None,
        step_prev=resolver.url_for(prev.step) if prev else None,
        step_current_name=graph[position].name,
    )
