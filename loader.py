from __future__ import annotations

import logging
from typing import Any, Callable

from blockspecs import BLOCK_KINDS, BLOCK_SPECS, WATCHER_LABELS, BlockInfo, category_color
from escaping import text_of
from markup import Element, SchemaError, parse
from media import MediaDecoder, MediaPayload
from model import (
    UNTITLED,
    Block,
    ColorSlot,
    CommandSlot,
    Color,
    Context,
    Costume,
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
    VariableFrame,
    Watcher,
    slots_for_spec,
)
from serializer import VERSION

logger = logging.getLogger(__name__)


class VersionError(ValueError):
    """Raised when a document is newer than this loader understands."""

    def __init__(self, message: str, version: str | None = None, supported: float | None = None) -> None:
        self.version = version
        self.supported = supported
        super().__init__(message)


class UnresolvedReferenceError(ValueError):
    """Raised for a <ref> whose id has not been defined earlier in the document."""

    def __init__(self, ref_id: str | None) -> None:
        self.ref_id = ref_id
        super().__init__(f"Reference to unknown id '{ref_id}'; definitions must precede references.")


class ProjectLoader:
    """Builds a :class:`~model.Project` from a project document.

    ``blocks`` is the table of built-in operations used to resolve
    ``<block s="...">``; blocks missing from it load as placeholders.
    ``media_decoder`` receives every media payload for (possibly
    asynchronous) decoding and ``on_media_ready`` is called with the owning
    costume, sound, stage or project once a payload is decoded.
    """

    def __init__(
        self,
        blocks: dict[str, BlockInfo] | None = None,
        media_decoder: MediaDecoder | None = None,
        on_media_ready: Callable[[Any], None] | None = None,
        supported_version: float = VERSION,
    ) -> None:
        self.blocks = BLOCK_SPECS if blocks is None else blocks
        self.media_decoder = media_decoder
        self.on_media_ready = on_media_ready
        self.supported_version = supported_version

    def load(self, text: str) -> Project:
        return _LoadSession(self, parse(text)).load()


def load(text: str, **options: Any) -> Project:
    return ProjectLoader(**options).load(text)


class _LoadSession:
    """State of one load call: the document and its id registry."""

    def __init__(self, loader: ProjectLoader, root: Element) -> None:
        self.loader = loader
        self.root = root
        self.objects: dict[str, Any] = {}
        self.project: Project | None = None

    def load(self) -> Project:
        root = self.root
        if root.name != "project":
            raise SchemaError("project")
        self._check_version(root)
        model_stage = root.require("stage")
        model_sprites = model_stage.require("sprites")

        project = self.project = Project(name=root.get("name") or UNTITLED)
        notes = root.element("notes")
        if notes is not None:
            project.notes = notes.text_content()
        project.thumbnail = self._media(root.element("thumbnail"), project)

        stage = project.stage
        stage.name = model_stage.get("name") or stage.name
        stage.pentrails = self._media(model_stage.element("pentrails"), stage)

        # Pass 1: the stage, every sprite and every definition signature, before
        # any value or script is read. Sprite ids are registered here.
        self._record(model_stage, stage)
        entries: list[tuple[ScriptableObject, Element]] = [(stage, model_stage)]
        for model in model_sprites.all("sprite"):
            sprite = project.add_sprite(self._new_sprite(model))
            self._record(model, sprite)
            entries.append((sprite, model))
        for obj, model in entries:
            self._declare_custom_blocks(obj, model.element("blocks"))

        # Pass 2: document order, so ids are registered before they are referenced.
        self._load_media_sections(stage, model_stage)
        self._populate_custom_blocks(stage, model_stage.element("blocks"))
        for sprite, model in entries[1:]:
            self._load_media_sections(sprite, model)
            self._populate_custom_blocks(sprite, model.element("blocks"))
            self._load_variables(sprite.variables, model.require("variables"))
            self._load_scripts(sprite, model.require("scripts"))
        self._load_variables(stage.variables, model_stage.require("variables"))
        self._load_scripts(stage, model_stage.require("scripts"))

        model_globals = root.element("variables")
        if model_globals is not None:
            self._load_variables(project.global_variables, model_globals)
        for model in model_sprites.all("watcher"):
            stage.watchers.append(self._load_watcher(model))
        return project

    def _check_version(self, root: Element) -> None:
        raw = root.get("version")
        if raw is None:
            return
        try:
            version = float(raw)
        except ValueError:
            raise VersionError(f"Unreadable project version '{raw}'.", version=raw) from None
        supported = self.loader.supported_version
        if version > supported:
            raise VersionError(
                f"Project uses format version {raw}, this loader supports up to {supported:g}.",
                version=raw,
                supported=supported,
            )

    # Sprites and stage

    def _new_sprite(self, model: Element) -> Sprite:
        sprite = Sprite(name=model.get("name", ""))
        sprite.x = _number(model.get("x"))
        sprite.y = _number(model.get("y"))
        sprite.heading = _number(model.get("heading"), default=90.0)
        if model.has("color"):
            sprite.color = Color.from_text(model.get("color"))
        return sprite

    def _load_media_sections(self, obj: ScriptableObject, model: Element) -> None:
        costumes = model.element("costumes")
        if costumes is not None:
            obj.costumes = self._load_value_list(costumes)
        sounds = model.element("sounds")
        if sounds is not None:
            obj.sounds = self._load_value_list(sounds)
        if model.has("costume"):
            obj.wear_costume(int(_number(model.get("costume"))))

    def _load_value_list(self, model: Element) -> ListValue:
        first = model.first_element()
        value = None if first is None else self._load_value(first)
        if not isinstance(value, ListValue):
            return ListValue()
        return value

    def _load_watcher(self, model: Element) -> Watcher:
        scope = model.get("scope")
        target = None if scope is None else self.project.scriptable(scope)
        if model.has("var"):
            name = model.get("var", "")
            frame = self.project.global_variables if target is None else target.variables
            watcher = Watcher(label=name, getter=name, target=frame, is_variable=True)
        else:
            getter = model.get("s", "")
            watcher = Watcher(label=WATCHER_LABELS.get(getter, getter), getter=getter, target=target)
        watcher.x = _number(model.get("x"))
        watcher.y = _number(model.get("y"))
        if model.has("color"):
            watcher.color = Color.from_text(model.get("color"))
        watcher.hidden = model.has("hidden")
        return watcher

    # Custom blocks

    def _declare_custom_blocks(self, obj: ScriptableObject, model: Element | None) -> None:
        if model is None:
            return
        for child in model.all("block-definition"):
            kind = child.get("type") or "command"
            definition = CustomBlockDefinition(
                spec=child.get("s", ""),
                category=child.get("category") or "other",
                kind=kind if kind in BLOCK_KINDS else "command",
                is_global=child.has("global"),
            )
            names = definition.input_names()
            inputs = child.element("inputs")
            if inputs is not None:
                for name, declaration in zip(names, inputs.all("input")):
                    definition.declarations[name] = (declaration.get("type") or "%s", declaration.text_content())
            obj.custom_blocks.append(definition)

    def _populate_custom_blocks(self, obj: ScriptableObject, model: Element | None) -> None:
        if model is None:
            return
        for definition, child in zip(obj.custom_blocks, model.all("block-definition")):
            outer = Context(receiver=obj)
            outer.variables.parent = obj.variables
            script = child.element("script")
            definition.body = Context(
                expression=None if script is None else self._load_script(script),
                inputs=definition.input_names(),
                receiver=obj,
                outer_context=outer,
            )

    # Scripts and blocks

    def _load_scripts(self, obj: ScriptableObject, model: Element) -> None:
        for child in model.all("script"):
            script = self._load_script(child)
            if script.blocks:
                obj.scripts.append(script)

    def _load_script(self, model: Element) -> Script:
        script = Script(x=_number(model.get("x")), y=_number(model.get("y")))
        for child in model.elements():
            block = self._load_block(child)
            if block is not None:
                script.blocks.append(block)
        return script

    def _load_block(self, model: Element) -> Block | None:
        if model.name == "block":
            if model.has("var"):
                return Block.variable(model.get("var", ""))
            selector = model.get("s")
            info = None if selector is None else self.loader.blocks.get(selector)
            if info is None:
                return self._obsolete_block(model)
            block = Block(
                selector=selector,
                spec=info.spec,
                kind=info.kind,
                category=info.category,
                inputs=list(slots_for_spec(info.spec)),
                color=category_color(info.category),
            )
            for slot, default in zip(block.inputs, info.defaults):
                if isinstance(slot, InputSlot) and default is not None:
                    slot.contents = text_of(default)
        elif model.name == "custom-block":
            scope = model.get("scope")
            definition = self._find_definition(model.get("s", ""), scope)
            if definition is None:
                return self._obsolete_block(model)
            block = definition.block_instance()
            block.is_global = scope is None
        else:
            logger.debug("Skipping <%s> in script, it is not a block.", model.name)
            return None
        for index, child in enumerate(model.elements()):
            self._load_input(child, block.inputs, index)
        return block

    def _find_definition(self, block_spec: str, scope: str | None) -> CustomBlockDefinition | None:
        if scope is not None:
            owner = self.project.scriptable(scope)
            return None if owner is None else owner.custom_block(block_spec)
        definition = self.project.stage.custom_block(block_spec)
        if definition is not None:
            return definition
        for obj in self.project.scriptables():
            for candidate in obj.custom_blocks:
                if candidate.is_global and candidate.block_spec() == block_spec:
                    return candidate
        return None

    def _obsolete_block(self, model: Element) -> ObsoleteBlock:
        selector = model.get("s")
        if selector is None or selector == "nop":
            logger.debug("Loading <%s> without an operation as a placeholder.", model.name)
            return ObsoleteBlock()
        logger.debug("Unresolved <%s s=%r scope=%r>, substituting a placeholder.", model.name, selector, model.get("scope"))
        return ObsoleteBlock(
            spec=selector,
            original_tag=model.name,
            original_selector=selector,
            scope=model.get("scope"),
            preserved=[child.to_markup() for child in model.elements()],
        )

    def _load_input(self, model: Element, inputs: list[Any], index: int) -> None:
        if index >= len(inputs):
            logger.debug("Ignoring extra input <%s> at position %d.", model.name, index)
            return
        slot = inputs[index]
        tag = model.name
        if tag == "script":
            script = self._load_script(model)
            if isinstance(slot, CommandSlot):
                slot.nested = script if script.blocks else None
            else:
                logger.debug("Ignoring script for non-command slot %r.", getattr(slot, "spec", slot))
        elif tag == "autolambda":
            first = model.first_element()
            block = None if first is None else self._load_block(first)
            if block is None:
                return
            if isinstance(slot, CommandSlot):
                slot.nested = block
            else:
                inputs[index] = block
        elif tag == "list" and isinstance(slot, MultiArgSlot) and not (model.has("id") or model.has("linked")):
            slot.clear()
            for item in model.elements():
                slot.add_input()
                self._load_input(item, slot.items, len(slot.items) - 1)
        elif tag in ("block", "custom-block"):
            block = self._load_block(model)
            if block is not None:
                inputs[index] = block
        elif tag == "color":
            if isinstance(slot, ColorSlot):
                slot.color = Color.from_text(model.text_content())
        else:
            value = self._load_value(model)
            if isinstance(value, str) and isinstance(slot, InputSlot):
                slot.contents = value
            elif value is not None:
                inputs[index] = value

    # Values

    def _load_variables(self, frame: VariableFrame, model: Element) -> None:
        for child in model.all("variable"):
            value = child.first_element()
            frame.vars[child.get("name", "")] = 0 if value is None else self._load_value(value)

    def _load_value(self, model: Element) -> Any:
        tag = model.name
        if tag == "ref":
            return self._resolve(model)
        if tag == "l":
            return model.text_content()
        if tag == "list":
            if model.has("linked"):
                return self._load_linked_list(model)
            return self._load_list(model)
        if tag == "context":
            return self._load_context(model)
        if tag == "costume":
            return self._load_costume(model)
        if tag == "sound":
            return self._load_sound(model)
        if tag == "color":
            return Color.from_text(model.text_content())
        logger.debug("No value decoder for <%s>.", tag)
        return None

    def _load_item(self, item: Element) -> Any:
        value = item.first_element()
        if value is None:
            return 0
        return self._load_value(value)

    def _load_list(self, model: Element) -> ListValue:
        value = ListValue()
        self._record(model, value)
        for item in model.all("item"):
            value.contents.append(self._load_item(item))
        return value

    def _load_linked_list(self, model: Element) -> ListValue:
        items = model.all("item")
        if not items:
            value = ListValue()
            self._record(model, value)
            return value
        head = node = ListValue(is_linked=True)
        self._record(model, head)
        for index, item in enumerate(items):
            if index > 0:
                node.rest = ListValue(is_linked=True)
                node = node.rest
            node.first = self._load_item(item)
        return head

    def _load_context(self, model: Element) -> Context:
        context = Context(is_lambda=model.has("lambda"))
        self._record(model, context)
        script = model.element("script")
        if script is not None:
            context.expression = self._load_script(script)
        receiver = model.element("receiver")
        if receiver is not None and receiver.element("ref") is not None:
            context.receiver = self._resolve(receiver.require("ref"))
        inputs = model.element("inputs")
        if inputs is not None:
            context.inputs = [item.text_content() for item in inputs.all("input")]
        variables = model.element("variables")
        if variables is not None:
            self._load_variables(context.variables, variables)
        outer = self._outer_element(model)
        if outer is not None:
            value = self._load_value(outer)
            if isinstance(value, Context):
                context.attach_outer(value)
        return context

    def _outer_element(self, model: Element) -> Element | None:
        # the outer closure follows <receiver>, inline or as a reference
        children = model.elements()
        for index, child in enumerate(children):
            if child.name == "receiver":
                children = children[index + 1 :]
                break
        for child in children:
            if child.name in ("context", "ref"):
                return child
        return None

    def _load_costume(self, model: Element) -> Costume:
        costume = Costume(
            name=model.get("name"),
            rotation_center=(_number(model.get("center-x")), _number(model.get("center-y"))),
        )
        self._record(model, costume)
        if model.has("image"):
            costume.image = self._payload(model.get("image", ""), costume)
        return costume

    def _load_sound(self, model: Element) -> Sound:
        sound = Sound(name=model.get("name"))
        self._record(model, sound)
        if model.has("sound"):
            sound.audio = self._payload(model.get("sound", ""), sound)
        return sound

    def _media(self, model: Element | None, owner: Any) -> MediaPayload | None:
        if model is None:
            return None
        return self._payload(model.text_content(), owner)

    def _payload(self, source: str, owner: Any) -> MediaPayload | None:
        if not source:
            return None
        payload = MediaPayload(source)
        on_ready = self.loader.on_media_ready

        def finished(done: MediaPayload) -> None:
            if not done.ready:
                logger.warning("Could not decode media for %r: %s", owner, done.future.exception())
            elif on_ready is not None:
                on_ready(owner)

        payload.add_done_callback(finished)
        if self.loader.media_decoder is not None:
            self.loader.media_decoder(payload)
        return payload

    # Registry

    def _record(self, model: Element, obj: Any) -> None:
        object_id = model.get("id")
        if object_id is not None:
            self.objects[object_id] = obj

    def _resolve(self, model: Element) -> Any:
        ref_id = model.get("id")
        if ref_id is None or ref_id not in self.objects:
            raise UnresolvedReferenceError(ref_id)
        return self.objects[ref_id]


def _number(text: str | None, default: float = 0.0) -> float:
    if text is None:
        return default
    try:
        return float(text)
    except ValueError:
        return default
