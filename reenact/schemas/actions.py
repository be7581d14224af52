"""
Action models for recorded browser interactions.

Every recorded step is one member of the closed `Action` union, discriminated
by its `type` field. Models accept the capture pipeline's camelCase JSON keys
and are frozen: preprocessing produces derived copies via `model_copy`.

## Key Components

1. **IdentificationStrategy** - Ordered set of ways to find a target element
2. **ActionContext** - Intent metadata (action groups, success flows, modals)
3. **Action** - Discriminated union of all supported action kinds
"""

import json
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing_extensions import Annotated


class RecordedModel(BaseModel):
    """Base for models parsed from recording JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class StrategyKind(str, Enum):
    """Ways an element can be identified, as named in `selector.priority`."""

    ID = "id"
    DATA_TEST_ID = "dataTestId"
    ARIA_LABEL = "ariaLabel"
    NAME = "name"
    CSS = "css"
    XPATH = "xpath"
    XPATH_ABSOLUTE = "xpathAbsolute"
    POSITION = "position"
    TEXT = "text"
    TEXT_CONTAINS = "textContains"


class ElementPosition(RecordedModel):
    parent: str
    index: int = Field(ge=0)


class IdentificationStrategy(RecordedModel):
    """Ordered set of alternative ways to locate one element.

    Only the kinds listed in `priority` whose value was captured take part in
    resolution, in the order given.

    Example:
        ```python
        strategy = IdentificationStrategy(
            id="checkout",
            css="form > button.primary",
            priority=[StrategyKind.ID, StrategyKind.CSS],
        )
        strategy.populated_priority()  # [StrategyKind.ID, StrategyKind.CSS]
        ```
    """

    id: Optional[str] = None
    equivalent_ids: List[str] = Field(default_factory=list)
    data_test_id: Optional[str] = None
    aria_label: Optional[str] = None
    name: Optional[str] = None
    css: Optional[str] = None
    xpath: Optional[str] = None
    xpath_absolute: Optional[str] = None
    position: Optional[ElementPosition] = None
    text: Optional[str] = None
    text_contains: Optional[str] = None
    priority: List[StrategyKind] = Field(default_factory=list)

    @field_validator("priority", mode="before")
    @classmethod
    def _drop_unknown_kinds(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        known = {kind.value for kind in StrategyKind}
        return [item for item in value if isinstance(item, StrategyKind) or item in known]

    def value_for(self, kind: StrategyKind) -> Any:
        """Return the captured value for a strategy kind, or None."""
        values: Dict[StrategyKind, Any] = {
            StrategyKind.ID: self.id,
            StrategyKind.DATA_TEST_ID: self.data_test_id,
            StrategyKind.ARIA_LABEL: self.aria_label,
            StrategyKind.NAME: self.name,
            StrategyKind.CSS: self.css,
            StrategyKind.XPATH: self.xpath,
            StrategyKind.XPATH_ABSOLUTE: self.xpath_absolute,
            StrategyKind.POSITION: self.position,
            StrategyKind.TEXT: self.text,
            StrategyKind.TEXT_CONTAINS: self.text_contains,
        }
        return values[kind]

    def populated_priority(self) -> List[StrategyKind]:
        """Priority kinds with a captured value, duplicates removed, order kept."""
        seen: List[StrategyKind] = []
        for kind in self.priority:
            value = self.value_for(kind)
            if value is None or value == "":
                continue
            if kind not in seen:
                seen.append(kind)
        return seen

    def identity_key(self) -> str:
        """Stable key used to decide whether two actions target the same element."""
        return json.dumps(
            self.model_dump(mode="json", exclude_none=True, exclude={"priority"}),
            sort_keys=True,
        )

    def describe(self, kind: Optional[StrategyKind] = None) -> str:
        """Short human readable description for logs and error messages.

        Describes `kind` when given, otherwise the highest priority populated kind.
        """
        kinds = [kind] if kind is not None else self.populated_priority()
        for candidate in kinds:
            value = self.value_for(candidate)
            if value is None:
                continue
            if isinstance(value, ElementPosition):
                value = f"{value.parent}[{value.index}]"
            return f"{candidate.value}={value}"
        return "<empty selector>"


class ContentFingerprint(RecordedModel):
    heading: Optional[str] = None
    subheading: Optional[str] = None
    image_alt: Optional[str] = None
    image_src: Optional[str] = None
    link_href: Optional[str] = None
    price: Optional[str] = None
    rating: Optional[str] = None
    button_text: Optional[str] = None


class ContentSignature(RecordedModel):
    """Content based description of an element inside a repeated list."""

    element_type: str
    list_container: Optional[str] = None
    content_fingerprint: ContentFingerprint = Field(default_factory=ContentFingerprint)
    fallback_position: Optional[int] = None


class ExpectedUrlChange(RecordedModel):
    type: str = "navigation"
    patterns: List[str] = Field(default_factory=list)
    is_success_flow: bool = False
    before_url: Optional[str] = None
    after_url: Optional[str] = None


class ActionContext(RecordedModel):
    """Intent metadata attached to an action by the capture pipeline."""

    navigation_intent: Optional[str] = None
    expected_url_change: Optional[ExpectedUrlChange] = None
    is_terminal_action: bool = False
    action_group: Optional[str] = None
    dependent_actions: List[str] = Field(default_factory=list)
    is_inside_modal: bool = False
    modal_id: Optional[str] = None


class ModalContext(RecordedModel):
    modal_id: Optional[str] = None
    within_modal: bool = False
    requires_modal_state: Optional[str] = None


class Coordinates(RecordedModel):
    x: float
    y: float


class ActionBase(RecordedModel):
    """Fields shared by every action kind."""

    id: str
    type: str
    timestamp: float
    url: str
    completed_at: Optional[float] = None
    selector: Optional[IdentificationStrategy] = None
    is_optional: bool = False
    skip_if_not_found: bool = False
    reason: Optional[str] = None
    context: Optional[ActionContext] = None
    content_signature: Optional[ContentSignature] = None

    @property
    def action_group(self) -> Optional[str]:
        return self.context.action_group if self.context else None


class ClickAction(ActionBase):
    type: Literal["click"] = "click"
    tag_name: Optional[str] = None
    text: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    coordinates_relative_to: Literal["element", "viewport", "document"] = "element"
    button: Literal["left", "right", "middle"] = "left"
    click_count: int = 1
    modifiers: List[str] = Field(default_factory=list)
    modal_context: Optional[ModalContext] = None
    expects_navigation: Optional[bool] = None
    click_type: Optional[str] = None


class InputAction(ActionBase):
    type: Literal["input"] = "input"
    value: str = ""
    input_type: str = "text"
    is_sensitive: bool = False
    simulation_type: Literal["type", "setValue"] = "type"
    typing_delay: Optional[float] = None

    @property
    def input_category(self) -> Literal["checkbox", "file", "text"]:
        if self.input_type in ("checkbox", "radio"):
            return "checkbox"
        if self.input_type == "file":
            return "file"
        return "text"


class SelectAction(ActionBase):
    type: Literal["select"] = "select"
    selected_value: Optional[str] = None
    selected_text: Optional[str] = None
    selected_index: Optional[int] = None


class HoverAction(ActionBase):
    type: Literal["hover"] = "hover"
    duration: Optional[float] = None
    is_dropdown_parent: bool = False


class ScrollAction(ActionBase):
    type: Literal["scroll"] = "scroll"
    scroll_x: float = 0
    scroll_y: float = 0
    element: Union[Literal["window"], IdentificationStrategy] = "window"


class NavigationAction(ActionBase):
    type: Literal["navigation"] = "navigation"
    from_url: Optional[str] = Field(default=None, alias="from")
    to: str
    navigation_trigger: str = "unknown"
    wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"] = "load"
    duration: Optional[float] = None


class SubmitAction(ActionBase):
    type: Literal["submit"] = "submit"
    form_data: Dict[str, Any] = Field(default_factory=dict)


class ModalElement(RecordedModel):
    id: Optional[str] = None
    classes: Optional[str] = None
    role: Optional[str] = None
    z_index: Optional[Union[int, str]] = None


class ModalLifecycleAction(ActionBase):
    type: Literal["modal-lifecycle"] = "modal-lifecycle"
    event: Literal["modal-opened", "modal-state-changed", "modal-closed"]
    modal_element: ModalElement = Field(default_factory=ModalElement)

    @property
    def modal_key(self) -> str:
        """Identifier used to track this modal's open state during a run."""
        if self.modal_element.id:
            return self.modal_element.id
        if self.context and self.context.modal_id:
            return self.context.modal_id
        if self.modal_element.classes:
            return self.modal_element.classes.split()[0]
        return self.modal_element.role or "modal"


class KeypressAction(ActionBase):
    type: Literal["keypress"] = "keypress"
    key: str
    code: Optional[str] = None
    modifiers: List[str] = Field(default_factory=list)


Action = Annotated[
    Union[
        ClickAction,
        InputAction,
        SelectAction,
        HoverAction,
        ScrollAction,
        NavigationAction,
        SubmitAction,
        ModalLifecycleAction,
        KeypressAction,
    ],
    Field(discriminator="type"),
]
