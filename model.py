from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Union

from media import MediaPayload

UNTITLED = "Untitled"
OBSOLETE_LABEL = "Obsolete!"


@dataclass
class Color:
    r: float = 0
    g: float = 0
    b: float = 0
    a: float = 1.0

    @classmethod
    def from_text(cls, text: str | None) -> Color:
        fields = [] if text is None else text.split(",")
        channels = [_number(piece) for piece in fields[:4]]
        while len(channels) < 3:
            channels.append(0.0)
        if len(channels) == 3:
            channels.append(1.0)
        return cls(*channels)

    def to_text(self, alpha: bool = True) -> str:
        channels = [self.r, self.g, self.b] + ([self.a] if alpha else [])
        return ",".join(_format_number(value) for value in channels)


OBSOLETE_COLOR = Color(200, 0, 20)


def _number(text: str) -> float:
    try:
        return float(text)
    except ValueError:
        return 0.0


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)


# Values


@dataclass(eq=False)
class VariableFrame:
    vars: dict[str, Any] = field(default_factory=dict)
    parent: VariableFrame | None = field(default=None, repr=False)
    owner: ScriptableObject | None = field(default=None, repr=False)

    def names(self) -> list[str]:
        return list(self.vars)

    def find(self, name: str) -> VariableFrame | None:
        frame: VariableFrame | None = self
        while frame is not None:
            if name in frame.vars:
                return frame
            frame = frame.parent
        return None

    def get(self, name: str, default: Any = None) -> Any:
        frame = self.find(name)
        if frame is None:
            return default
        return frame.vars[name]


@dataclass(eq=False)
class ListValue:
    """A list in either array form or linked (cons-cell) form."""

    contents: list[Any] = field(default_factory=list)
    first: Any = None
    rest: ListValue | None = field(default=None, repr=False)
    is_linked: bool = False

    @classmethod
    def linked(cls, items: list[Any]) -> ListValue:
        result = cls()
        for item in reversed(items):
            result = result.cons(item)
        return result

    def cons(self, item: Any) -> ListValue:
        return ListValue(first=item, rest=self, is_linked=True)

    def as_array(self) -> list[Any]:
        items: list[Any] = []
        node: ListValue | None = self
        while node is not None:
            if not node.is_linked:
                items.extend(node.contents)
                break
            items.append(node.first)
            node = node.rest
        return items

    def length(self) -> int:
        return len(self.as_array())

    def at(self, index: int) -> Any:
        items = self.as_array()
        if 1 <= index <= len(items):
            return items[index - 1]
        return None


@dataclass(eq=False)
class Costume:
    name: str | None = None
    rotation_center: tuple[float, float] = (0.0, 0.0)
    image: MediaPayload | None = None

    @property
    def loaded(self) -> bool:
        return self.image is not None and self.image.ready


@dataclass(eq=False)
class Sound:
    name: str | None = None
    audio: MediaPayload | None = None

    @property
    def loaded(self) -> bool:
        return self.audio is not None and self.audio.ready


@dataclass(eq=False)
class Context:
    """A reified script: expression, input names, frame and captured scope."""

    expression: Script | None = None
    inputs: list[str] = field(default_factory=list)
    variables: VariableFrame = field(default_factory=VariableFrame)
    receiver: Any = field(default=None, repr=False)
    outer_context: Context | None = field(default=None, repr=False)
    is_lambda: bool = False

    def __post_init__(self) -> None:
        if self.outer_context is not None:
            self.attach_outer(self.outer_context)

    def attach_outer(self, outer: Context) -> None:
        self.outer_context = outer
        self.variables.parent = outer.variables
        if self.receiver is None:
            self.receiver = outer.receiver


# Slots


@dataclass(eq=False)
class InputSlot:
    spec: str = "%s"
    contents: str = ""

    @property
    def is_numeric(self) -> bool:
        return self.spec in NUMERIC_SLOTS


@dataclass(eq=False)
class CommandSlot:
    """C-shaped and ring slots; holds a nested script or a reporter block."""

    spec: str = "%c"
    nested: Script | Block | None = None


@dataclass(eq=False)
class ColorSlot:
    spec: str = "%clr"
    color: Color = field(default_factory=lambda: Color(145, 26, 68))


@dataclass(eq=False)
class MultiArgSlot:
    spec: str
    element_spec: str = "%s"
    items: list[Slot | Block] = field(default_factory=list)
    label: str | None = None

    def add_input(self) -> Slot | Block:
        slot = make_slot(self.element_spec) or InputSlot(self.element_spec)
        self.items.append(slot)
        return slot

    def clear(self) -> None:
        self.items.clear()


Slot = Union[InputSlot, CommandSlot, ColorSlot, MultiArgSlot]

NUMERIC_SLOTS = {"%n", "%dir", "%inst", "%ida", "%idx"}

SLOT_DEFAULTS = {
    "%dir": "90",
    "%inst": "1",
    "%ida": "1",
    "%idx": "1",
    "%eff": "ghost",
    "%key": "space",
    "%att": "x position",
    "%fun": "sqrt",
    "%typ": "number",
    "%t": "a",
    "%upvar": "↑",
}

COMMAND_SLOTS = {"%c", "%cs", "%cmd", "%f", "%r", "%p"}

# label symbols and layout markers, not inputs
SYMBOL_PARTS = {"%clockwise", "%counterclockwise", "%greenflag", "%stop", "%br", "%inputName"}


def make_slot(token: str) -> Slot | None:
    if not token.startswith("%") or len(token) < 2 or token in SYMBOL_PARTS:
        return None
    if token.startswith("%mult") and len(token) > 5:
        slot = MultiArgSlot(spec=token, element_spec=token[5:])
        slot.add_input()
        return slot
    if token == "%inputs":
        return MultiArgSlot(spec=token, element_spec="%s", label="with inputs")
    if token == "%scriptVars":
        slot = MultiArgSlot(spec=token, element_spec="%t")
        slot.add_input()
        return slot
    if token == "%parms":
        return MultiArgSlot(spec=token, element_spec="%t", label="Input Names:")
    if token == "%words":
        slot = MultiArgSlot(spec=token, element_spec="%s")
        slot.add_input()
        slot.add_input()
        return slot
    if token in COMMAND_SLOTS:
        return CommandSlot(spec=token)
    if token == "%clr":
        return ColorSlot()
    return InputSlot(spec=token, contents=SLOT_DEFAULTS.get(token, ""))


def slots_for_spec(spec: str) -> list[Slot]:
    slots: list[Slot] = []
    for token in spec.split():
        slot = make_slot(token)
        if slot is not None:
            slots.append(slot)
    return slots


# Blocks


@dataclass(eq=False)
class Block:
    selector: str
    spec: str
    kind: str = "command"
    category: str = "other"
    inputs: list[Slot | Block] = field(default_factory=list)
    color: Color | None = None

    @classmethod
    def variable(cls, name: str) -> Block:
        return cls(selector="reportGetVar", spec=name, kind="reporter", category="variables")

    @property
    def is_variable_getter(self) -> bool:
        return self.selector == "reportGetVar"

    @property
    def is_reporter(self) -> bool:
        return self.kind in ("reporter", "predicate")

    def nested_blocks(self) -> Iterator[Block]:
        for item in self.inputs:
            yield from _blocks_in(item)

    def all_blocks(self) -> Iterator[Block]:
        yield self
        for block in self.nested_blocks():
            yield from block.all_blocks()


@dataclass(eq=False)
class CustomBlock(Block):
    selector: str = "evaluateCustomBlock"
    spec: str = ""
    definition: CustomBlockDefinition | None = field(default=None, repr=False)
    is_global: bool = False


@dataclass(eq=False)
class ObsoleteBlock(Block):
    """Stands in for a block whose operation could not be resolved.

    The original tag, selector, scope and child markup are kept so writing the
    project again does not drop them.
    """

    selector: str = "nop"
    spec: str = OBSOLETE_LABEL
    color: Color | None = field(default_factory=lambda: OBSOLETE_COLOR)
    original_tag: str = "block"
    original_selector: str | None = None
    scope: str | None = None
    preserved: list[str] = field(default_factory=list)


def _blocks_in(item: Any) -> Iterator[Block]:
    if isinstance(item, Block):
        yield item
    elif isinstance(item, CommandSlot):
        if isinstance(item.nested, Block):
            yield item.nested
        elif isinstance(item.nested, Script):
            yield from item.nested.blocks
    elif isinstance(item, MultiArgSlot):
        for element in item.items:
            yield from _blocks_in(element)


@dataclass(eq=False)
class Script:
    blocks: list[Block] = field(default_factory=list)
    x: float = 0
    y: float = 0

    def all_blocks(self) -> Iterator[Block]:
        for block in self.blocks:
            yield from block.all_blocks()


def parse_spec(spec: str) -> list[str]:
    """Split a custom block spec on spaces; single quotes group words."""
    parts: list[str] = []
    word = ""
    quoted = False
    for ch in spec:
        if ch == "'":
            quoted = not quoted
        elif ch == " " and not quoted:
            parts.append(word)
            word = ""
        else:
            word += ch
    parts.append(word)
    return parts


@dataclass(eq=False)
class CustomBlockDefinition:
    spec: str = ""
    category: str = "other"
    kind: str = "command"
    declarations: dict[str, tuple[str, str]] = field(default_factory=dict)
    body: Context | None = field(default=None, repr=False)
    is_global: bool = False

    def input_names(self) -> list[str]:
        return [part[1:] for part in parse_spec(self.spec) if part.startswith("%")]

    def type_of(self, name: str) -> str:
        if name in self.declarations:
            return self.declarations[name][0]
        return "%s"

    def default_value_of(self, name: str) -> str:
        if name in self.declarations:
            return self.declarations[name][1]
        return ""

    def block_spec(self) -> str:
        parts = [self.type_of(part[1:]) if part.startswith("%") else part for part in parse_spec(self.spec)]
        return " ".join(parts).strip()

    @property
    def owner(self) -> Any:
        if self.body is None:
            return None
        return self.body.receiver

    def block_instance(self) -> CustomBlock:
        inputs = slots_for_spec(self.block_spec())
        defaults = [self.default_value_of(name) for name in self.input_names()]
        for slot, default in zip(inputs, defaults):
            if isinstance(slot, InputSlot) and default:
                slot.contents = default
        return CustomBlock(
            spec=self.block_spec(),
            kind=self.kind,
            category=self.category,
            inputs=list(inputs),
            definition=self,
            is_global=self.is_global,
        )

    def all_blocks(self) -> Iterator[Block]:
        if self.body is not None and self.body.expression is not None:
            yield from self.body.expression.all_blocks()


# Sprites


@dataclass(eq=False)
class ScriptableObject:
    name: str = ""
    costumes: ListValue = field(default_factory=ListValue)
    sounds: ListValue = field(default_factory=ListValue)
    custom_blocks: list[CustomBlockDefinition] = field(default_factory=list)
    variables: VariableFrame = field(default_factory=VariableFrame, repr=False)
    scripts: list[Script] = field(default_factory=list)
    costume: Costume | None = None

    def __post_init__(self) -> None:
        self.variables.owner = self

    def costume_index(self) -> int:
        for index, costume in enumerate(self.costumes.as_array(), start=1):
            if costume is self.costume:
                return index
        return 0

    def wear_costume(self, index: int) -> None:
        costume = self.costumes.at(index)
        if isinstance(costume, Costume):
            self.costume = costume

    def custom_block(self, block_spec: str) -> CustomBlockDefinition | None:
        for definition in self.custom_blocks:
            if definition.block_spec() == block_spec:
                return definition
        return None

    def all_blocks(self) -> Iterator[Block]:
        for definition in self.custom_blocks:
            yield from definition.all_blocks()
        for script in self.scripts:
            yield from script.all_blocks()


@dataclass(eq=False)
class Sprite(ScriptableObject):
    x: float = 0
    y: float = 0
    heading: float = 90
    color: Color = field(default_factory=lambda: Color(80, 80, 80))


@dataclass(eq=False)
class Watcher:
    label: str
    getter: str
    target: VariableFrame | ScriptableObject | None = field(default=None, repr=False)
    is_variable: bool = False
    x: float = 0
    y: float = 0
    color: Color = field(default_factory=lambda: Color(243, 118, 29))
    hidden: bool = False

    @property
    def scope(self) -> ScriptableObject | None:
        if isinstance(self.target, VariableFrame):
            return self.target.owner
        return self.target


@dataclass(eq=False)
class Stage(ScriptableObject):
    name: str = "Stage"
    sprites: list[Sprite] = field(default_factory=list)
    watchers: list[Watcher] = field(default_factory=list)
    pentrails: MediaPayload | None = None
    width: int = 480
    height: int = 360


@dataclass(eq=False)
class Project:
    name: str = UNTITLED
    notes: str = ""
    thumbnail: MediaPayload | None = None
    stage: Stage = field(default_factory=Stage)
    global_variables: VariableFrame = field(default_factory=VariableFrame)

    def __post_init__(self) -> None:
        self.stage.variables.parent = self.global_variables
        for sprite in self.stage.sprites:
            sprite.variables.parent = self.global_variables

    @property
    def sprites(self) -> list[Sprite]:
        return self.stage.sprites

    def add_sprite(self, sprite: Sprite) -> Sprite:
        sprite.variables.parent = self.global_variables
        self.stage.sprites.append(sprite)
        return sprite

    def sprite(self, name: str) -> Sprite | None:
        for sprite in self.stage.sprites:
            if sprite.name == name:
                return sprite
        return None

    def scriptable(self, name: str) -> ScriptableObject | None:
        if name == self.stage.name:
            return self.stage
        return self.sprite(name)

    def scriptables(self) -> list[ScriptableObject]:
        return [self.stage, *self.stage.sprites]
