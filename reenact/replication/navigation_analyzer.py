"""
Structural analysis of recorded navigations.

Capture tools often cannot tell why a navigation happened: a back-button
press, a link click and a form-submit redirect all look like a URL change.
`NavigationAnalyzer` infers the real trigger from the surrounding actions
and URL hierarchy, and spots dropdown clicks whose opening hover was never
recorded.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from reenact.schemas.actions import (
    ActionBase,
    ClickAction,
    HoverAction,
    KeypressAction,
    NavigationAction,
    SubmitAction,
)
from reenact.schemas.results import PrerequisiteInsertion
from reenact.utils.url_matching import url_path_segments, urls_match

TRIGGER_WINDOW_MS = 2000
TIMELINE_GAP_MS = 3000
PREREQUISITE_LOOKBACK_ACTIONS = 3
PREREQUISITE_LOOKBACK_MS = 2000

DROPDOWN_MARKERS = ("dropdown", "menu-item", "submenu")

# Actions that can legitimately change the page URL
_URL_CHANGING_ACTIONS = (ClickAction, SubmitAction, NavigationAction, KeypressAction)


@dataclass(frozen=True)
class NavigationAnalysis:
    real_trigger: str
    confidence: str
    reason: str


def url_relationship(from_url: Optional[str], to_url: str) -> str:
    """Classify two URLs as parent-to-child, child-to-parent, same-level or different-domain."""
    if not from_url:
        return "same-level"
    source, target = urlparse(from_url), urlparse(to_url)
    if not source.netloc or not target.netloc:
        return "same-level"
    if source.hostname != target.hostname:
        return "different-domain"

    from_parts = url_path_segments(from_url)
    to_parts = url_path_segments(to_url)

    if len(to_parts) > len(from_parts) and to_parts[: len(from_parts)] == from_parts:
        return "parent-to-child"
    if len(from_parts) > len(to_parts) and from_parts[: len(to_parts)] == to_parts:
        return "child-to-parent"
    return "same-level"


def extract_parent_selector(css: str) -> Optional[str]:
    """Drop the last compound of a css path: `div.menu > ul > li` -> `div.menu > ul`."""
    parts = [part.strip() for part in css.split(">")]
    if len(parts) > 1:
        return " > ".join(parts[:-1])
    space_parts = [part for part in css.split(" ") if part.strip()]
    if len(space_parts) > 1:
        return " ".join(space_parts[:-1])
    return None


class NavigationAnalyzer:
    """Infer real navigation triggers and missing prerequisite interactions."""

    def analyze_navigation(
        self, navigation: NavigationAction, previous: Optional[ActionBase]
    ) -> NavigationAnalysis:
        """Determine what most likely caused a recorded navigation.

        Args:
            navigation (NavigationAction): The recorded navigation
            previous (Optional[ActionBase]): The action recorded just before it

        Returns:
            NavigationAnalysis: Inferred trigger with a high/medium/low confidence
        """
        if previous is not None:
            gap = navigation.timestamp - previous.timestamp

            if isinstance(previous, SubmitAction) and gap < TRIGGER_WINDOW_MS:
                return NavigationAnalysis(
                    "form-submit", "high", "Previous action was form submit"
                )

            if isinstance(previous, ClickAction) and gap < TRIGGER_WINDOW_MS:
                css = previous.selector.css if previous.selector else None
                if previous.tag_name == "a" or (css and ("href" in css or "<a" in css)):
                    return NavigationAnalysis(
                        "link-click", "high", "Previous action was click on link"
                    )
                return NavigationAnalysis(
                    "link-click",
                    "medium",
                    "Previous action was click (likely triggered navigation)",
                )

        relationship = url_relationship(navigation.from_url, navigation.to)
        if relationship == "parent-to-child":
            return NavigationAnalysis(
                "link-click",
                "high",
                "URL moved deeper into site hierarchy (forward navigation)",
            )
        if relationship == "child-to-parent":
            return NavigationAnalysis(
                "back", "medium", "URL moved up in site hierarchy (likely back button)"
            )
        if relationship == "same-level":
            return NavigationAnalysis(
                "link-click", "low", "URL at same hierarchy level (likely link click)"
            )

        if previous is None or navigation.timestamp - previous.timestamp > TIMELINE_GAP_MS:
            return NavigationAnalysis(
                "back", "medium", "No recent action triggered this (likely browser button)"
            )

        return NavigationAnalysis("unknown", "low", "Could not determine navigation trigger")

    def preprocess_recording(
        self, actions: Sequence[ActionBase]
    ) -> Tuple[List[ActionBase], List[str]]:
        """Relabel high-confidence mislabeled navigations and report anomalies.

        Only navigation actions can change, and only on a copy.

        Returns:
            Tuple[List[ActionBase], List[str]]: Corrected actions and warnings
        """
        corrected: List[ActionBase] = []
        warnings: List[str] = []

        for index, action in enumerate(actions):
            previous = actions[index - 1] if index > 0 else None

            if (
                previous is not None
                and not isinstance(action, NavigationAction)
                and not isinstance(previous, _URL_CHANGING_ACTIONS)
                and not urls_match(previous.url, action.url)
            ):
                warnings.append(
                    f"[{action.id}] Page changed from {previous.url} to {action.url} "
                    f"with no navigation, click or submit recorded"
                )

            if not isinstance(action, NavigationAction):
                corrected.append(action)
                continue

            analysis = self.analyze_navigation(action, previous)
            recorded = action.navigation_trigger
            if analysis.confidence == "high" and recorded != analysis.real_trigger:
                warnings.append(
                    f'[{action.id}] Navigation mislabeled: recorded as "{recorded}", '
                    f'but analysis indicates "{analysis.real_trigger}" ({analysis.reason})'
                )
                corrected.append(
                    action.model_copy(update={"navigation_trigger": analysis.real_trigger})
                )
            else:
                corrected.append(action)

        return corrected, warnings

    def detect_missing_prerequisites(
        self, actions: Sequence[ActionBase]
    ) -> List[PrerequisiteInsertion]:
        """Find dropdown/menu item clicks with no recent hover or click on their parent.

        The result is diagnostic: the action list is never modified.
        """
        insertions: List[PrerequisiteInsertion] = []

        for index, action in enumerate(actions):
            if not isinstance(action, ClickAction) or action.selector is None:
                continue
            css = action.selector.css
            if not css:
                continue

            xpath = action.selector.xpath or ""
            if not (any(marker in css for marker in DROPDOWN_MARKERS) or "menu" in xpath):
                continue

            if self._has_recent_parent_interaction(actions, index, css):
                continue

            parent_selector = extract_parent_selector(css)
            if parent_selector:
                insertions.append(
                    PrerequisiteInsertion(
                        before_action_id=action.id,
                        index=index,
                        kind="hover",
                        parent_selector=parent_selector,
                        reason=f"Dropdown item click requires parent hover: {parent_selector}",
                    )
                )

        return insertions

    def _has_recent_parent_interaction(
        self, actions: Sequence[ActionBase], index: int, css: str
    ) -> bool:
        current = actions[index]
        lower_bound = max(0, index - PREREQUISITE_LOOKBACK_ACTIONS)

        for previous_index in range(index - 1, lower_bound - 1, -1):
            previous = actions[previous_index]
            if current.timestamp - previous.timestamp > PREREQUISITE_LOOKBACK_MS:
                break
            if isinstance(previous, (ClickAction, HoverAction)) and previous.selector:
                previous_css = previous.selector.css
                if previous_css and css.startswith(previous_css):
                    return True

        return False
