from __future__ import annotations

from typing import Any, Callable

from escaping import render
from media import MediaPayload
from model import (
    Block,
    Color,
    ColorSlot,
    CommandSlot,
    Context,
    Costume,
    CustomBlock,
    CustomBlockDefinition,
    InputSlot,
    ListValue,
    MultiArgSlot,
    ObsoleteBlock,
    Project,
    Script,
    ScriptableObject,
    Sound,
    Sprite,
    Stage,
    VariableFrame,
    Watcher,
)

VERSION = 1


class SerializationError(ValueError):
    """Raised when an object has no markup producer."""


class Serializer:
    """Writes an object graph as markup, encoding each identity once.

    Objects of the kinds in ``IDENTITY_KINDS`` receive an id the first time
    they are stored; later occurrences become ``<ref id="..."/>``. The
    registry lives for one :meth:`serialize` call.
    """

    def __init__(self, version: int = VERSION) -> None:
        self.version = version
        self._ids: dict[int, tuple[Any, int]] = {}
        self._current: list[int] = []
        self._reserved: set[int] = set()
        self._owners: dict[int, ScriptableObject] = {}

    def serialize(self, root: Any) -> str:
        self._ids = {}
        self._current = []
        self._reserved = set()
        self._owners = {}
        try:
            return self.store(root)
        finally:
            self._ids.clear()
            self._current.clear()
            self._reserved.clear()
            self._owners.clear()

    def store(self, obj: Any) -> str:
        if obj is None:
            return ""
        if isinstance(obj, (str, int, float)):
            return render("<l>$</l>", obj)
        producer = _producer_for(obj)
        if not isinstance(obj, IDENTITY_KINDS):
            return producer(self, obj)
        known = self._ids.get(id(obj))
        if known is not None:
            return render('<ref id="@"/>', known[1])
        return self._produce(obj, self.reserve(obj), producer)

    def reserve(self, obj: Any) -> int:
        """Assign an id to ``obj`` now; its markup is written later by :meth:`define`."""
        known = self._ids.get(id(obj))
        if known is not None:
            return known[1]
        object_id = len(self._ids) + 1
        self._ids[id(obj)] = (obj, object_id)
        self._reserved.add(id(obj))
        return object_id

    def define(self, obj: Any) -> str:
        """Write the full markup of a reserved object; other occurrences stay references."""
        if id(obj) not in self._reserved:
            return self.store(obj)
        return self._produce(obj, self._ids[id(obj)][1], _producer_for(obj))

    def _produce(self, obj: Any, object_id: int, producer: Callable[[Serializer, Any], str]) -> str:
        self._reserved.discard(id(obj))
        self._current.append(object_id)
        try:
            return producer(self, obj)
        finally:
            self._current.pop()

    def store_all(self, items: list[Any]) -> str:
        return "".join(self.store(item) for item in items)

    def is_stored(self, obj: Any) -> bool:
        return id(obj) in self._ids

    def register_owner(self, obj: ScriptableObject) -> None:
        for definition in obj.custom_blocks:
            self._owners[id(definition)] = obj

    def owner_of(self, definition: CustomBlockDefinition) -> ScriptableObject | None:
        owner = self._owners.get(id(definition))
        if owner is None:
            return definition.owner
        return owner

    def format(self, pattern: str, *args: Any) -> str:
        """Render ``pattern``; ``~`` becomes the id of the object being stored."""
        fragment = render('id="@"', self._current[-1]) if self._current else ""
        return render(pattern, *args, id_fragment=fragment)


def serialize(root: Any, version: int = VERSION) -> str:
    return Serializer(version=version).serialize(root)


# Producers


def _project_markup(s: Serializer, project: Project) -> str:
    for obj in project.scriptables():
        s.register_owner(obj)
    return s.format(
        '<project name="@" version="@">'
        "<notes>$</notes>"
        "<thumbnail>$</thumbnail>"
        "%"
        "<variables>%</variables>"
        "</project>",
        project.name,
        s.version,
        project.notes,
        _payload_text(project.thumbnail),
        s.store(project.stage),
        s.store(project.global_variables),
    )


def _stage_markup(s: Serializer, stage: Stage) -> str:
    # sprites get their ids up front so values anywhere can refer to them
    s.register_owner(stage)
    for sprite in stage.sprites:
        s.reserve(sprite)
        s.register_owner(sprite)
    return s.format(
        '<stage name="@" costume="@" ~>'
        "<pentrails>$</pentrails>"
        "%"
        "<sprites>%%</sprites>"
        "<variables>%</variables>"
        "<scripts>%</scripts>"
        "</stage>",
        stage.name,
        stage.costume_index(),
        _payload_text(stage.pentrails),
        _object_sections(s, stage),
        "".join(s.define(sprite) for sprite in stage.sprites),
        s.store_all(stage.watchers),
        s.store(stage.variables),
        s.store_all(stage.scripts),
    )


def _sprite_markup(s: Serializer, sprite: Sprite) -> str:
    s.register_owner(sprite)
    return s.format(
        '<sprite name="@" x="@" y="@" heading="@" costume="@" color="@" ~>'
        "%"
        "<variables>%</variables>"
        "<scripts>%</scripts>"
        "</sprite>",
        sprite.name,
        sprite.x,
        sprite.y,
        sprite.heading,
        sprite.costume_index(),
        sprite.color.to_text(alpha=False),
        _object_sections(s, sprite),
        s.store(sprite.variables),
        s.store_all(sprite.scripts),
    )


def _object_sections(s: Serializer, obj: Stage | Sprite) -> str:
    return s.format(
        "<costumes>%</costumes><sounds>%</sounds><blocks>%</blocks>",
        s.store(obj.costumes),
        s.store(obj.sounds),
        s.store_all(obj.custom_blocks),
    )


def _watcher_markup(s: Serializer, watcher: Watcher) -> str:
    scope = watcher.scope
    return s.format(
        "<watcher%% x=\"@\" y=\"@\" color=\"@\"%/>",
        "" if scope is None else s.format(' scope="@"', scope.name),
        s.format(' var="@"' if watcher.is_variable else ' s="@"', watcher.getter),
        watcher.x,
        watcher.y,
        watcher.color.to_text(alpha=False),
        ' hidden="hidden"' if watcher.hidden else "",
    )


def _costume_markup(s: Serializer, costume: Costume) -> str:
    image = "" if costume.image is None else s.format(' image="@"', costume.image.source)
    return s.format(
        '<costume name="@" center-x="@" center-y="@"% ~/>',
        costume.name,
        costume.rotation_center[0],
        costume.rotation_center[1],
        image,
    )


def _sound_markup(s: Serializer, sound: Sound) -> str:
    return s.format('<sound name="@" sound="@" ~/>', sound.name, _payload_text(sound.audio))


def _frame_markup(s: Serializer, frame: VariableFrame) -> str:
    markup = []
    for name, value in frame.vars.items():
        if value is None:
            markup.append(s.format('<variable name="@"/>', name))
        else:
            markup.append(s.format('<variable name="@">%</variable>', name, s.store(value)))
    return "".join(markup)


def _list_markup(s: Serializer, value: ListValue) -> str:
    items = "".join(s.format("<item>%</item>", s.store(item)) for item in value.as_array())
    if value.is_linked:
        return s.format('<list linked="linked" ~>%</list>', items)
    return s.format("<list ~>%</list>", items)


def _context_markup(s: Serializer, context: Context) -> str:
    receiver = context.receiver
    # receivers are only ever written as references to objects already on the page
    receiver_markup = s.store(receiver) if receiver is not None and s.is_stored(receiver) else ""
    return s.format(
        "<context% ~><inputs>%</inputs><variables>%</variables>%<receiver>%</receiver>%</context>",
        ' lambda="lambda"' if context.is_lambda else "",
        "".join(s.format("<input>$</input>", name) for name in context.inputs),
        s.store(context.variables),
        s.store(context.expression),
        receiver_markup,
        s.store(context.outer_context),
    )


def _definition_markup(s: Serializer, definition: CustomBlockDefinition) -> str:
    declarations = "".join(
        s.format('<input type="@">$</input>', definition.type_of(name), definition.default_value_of(name))
        for name in definition.input_names()
    )
    expression = None if definition.body is None else definition.body.expression
    return s.format(
        '<block-definition s="@" type="@" category="@"%><inputs>%</inputs>%</block-definition>',
        definition.spec,
        definition.kind,
        definition.category or "other",
        ' global="global"' if definition.is_global else "",
        declarations,
        s.store(expression),
    )


def _script_markup(s: Serializer, script: Script) -> str:
    return s.format('<script x="@" y="@">%</script>', script.x, script.y, s.store_all(script.blocks))


def _block_markup(s: Serializer, block: Block) -> str:
    if block.is_variable_getter:
        return s.format('<block var="@"/>', block.spec)
    return s.format('<block s="@">%</block>', block.selector, s.store_all(block.inputs))


def _custom_block_markup(s: Serializer, block: CustomBlock) -> str:
    scope = ""
    if not block.is_global:
        owner = None if block.definition is None else s.owner_of(block.definition)
        scope = s.format(' scope="@"', "none" if owner is None else owner.name)
    return s.format('<custom-block s="@"%>%</custom-block>', block.spec, scope, s.store_all(block.inputs))


def _obsolete_block_markup(s: Serializer, block: ObsoleteBlock) -> str:
    if block.original_selector is None:
        return s.format('<block s="@"/>', block.selector)
    scope = "" if block.scope is None else s.format(' scope="@"', block.scope)
    return s.format(
        '<%0 s="@1"%2>%3</%0>',
        block.original_tag,
        block.original_selector,
        scope,
        "".join(block.preserved),
    )


def _input_slot_markup(s: Serializer, slot: InputSlot) -> str:
    return s.format("<l>$</l>", slot.contents)


def _command_slot_markup(s: Serializer, slot: CommandSlot) -> str:
    nested = slot.nested
    if isinstance(nested, Block):
        if nested.is_reporter:
            return s.format("<autolambda>%</autolambda>", s.store(nested))
        return s.format("<script>%</script>", s.store(nested))
    if isinstance(nested, Script) and nested.blocks:
        return s.format("<script>%</script>", s.store_all(nested.blocks))
    return "<script></script>"


def _multi_arg_markup(s: Serializer, slot: MultiArgSlot) -> str:
    return s.format("<list>%</list>", s.store_all(slot.items))


def _color_slot_markup(s: Serializer, slot: ColorSlot) -> str:
    return _color_markup(s, slot.color)


def _color_markup(s: Serializer, color: Color) -> str:
    return s.format("<color>$</color>", color.to_text())


def _array_markup(s: Serializer, items: list) -> str:
    return s.store_all(items)


def _payload_text(payload: MediaPayload | None) -> str:
    return "" if payload is None else payload.source


PRODUCERS: dict[type, Callable[[Serializer, Any], str]] = {
    Project: _project_markup,
    Stage: _stage_markup,
    Sprite: _sprite_markup,
    Watcher: _watcher_markup,
    Costume: _costume_markup,
    Sound: _sound_markup,
    VariableFrame: _frame_markup,
    ListValue: _list_markup,
    Context: _context_markup,
    CustomBlockDefinition: _definition_markup,
    Script: _script_markup,
    ObsoleteBlock: _obsolete_block_markup,
    CustomBlock: _custom_block_markup,
    Block: _block_markup,
    InputSlot: _input_slot_markup,
    CommandSlot: _command_slot_markup,
    MultiArgSlot: _multi_arg_markup,
    ColorSlot: _color_slot_markup,
    Color: _color_markup,
    list: _array_markup,
}

IDENTITY_KINDS = (Stage, Sprite, Costume, Sound, ListValue, Context)


def _producer_for(obj: Any) -> Callable[[Serializer, Any], str]:
    for kind in type(obj).__mro__:
        producer = PRODUCERS.get(kind)
        if producer is not None:
            return producer
    raise SerializationError(f"Cannot serialize objects of type '{type(obj).__name__}'.")
