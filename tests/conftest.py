from __future__ import annotations

from typing import Any

import pytest

from blockspecs import BLOCK_SPECS, category_color
from media import MediaPayload
from model import (
    Block,
    CommandSlot,
    Context,
    Costume,
    CustomBlockDefinition,
    InputSlot,
    ListValue,
    Project,
    Script,
    ScriptableObject,
    Sound,
    Sprite,
    Watcher,
    slots_for_spec,
)

PIXEL = "data:image/png;base64,iVBORw0KGgo="
CLICK = "data:audio/wav;base64,UklGRg=="


def make_block(selector: str, *contents: Any) -> Block:
    """Build a primitive block; strings fill text slots, blocks and scripts nest."""
    info = BLOCK_SPECS[selector]
    block = Block(
        selector=selector,
        spec=info.spec,
        kind=info.kind,
        category=info.category,
        inputs=list(slots_for_spec(info.spec)),
        color=category_color(info.category),
    )
    for index, value in enumerate(contents):
        slot = block.inputs[index]
        if isinstance(value, Script):
            assert isinstance(slot, CommandSlot)
            slot.nested = value
        elif isinstance(value, Block):
            block.inputs[index] = value
        else:
            assert isinstance(slot, InputSlot)
            slot.contents = value
    return block


def define(owner: ScriptableObject, spec: str, kind: str = "command", **declarations: tuple[str, str]) -> CustomBlockDefinition:
    definition = CustomBlockDefinition(spec=spec, kind=kind, declarations=dict(declarations))
    owner.custom_blocks.append(definition)
    return definition


def give_body(definition: CustomBlockDefinition, owner: ScriptableObject, *blocks: Block) -> None:
    outer = Context(receiver=owner)
    outer.variables.parent = owner.variables
    definition.body = Context(
        expression=Script(blocks=list(blocks)),
        inputs=definition.input_names(),
        receiver=owner,
        outer_context=outer,
    )


def build_project() -> Project:
    """A small project touching every section of the document layout."""
    project = Project(name="Demo & <Friends>", notes='Line one\nsays "hi"')
    stage = project.stage
    backdrop = Costume(name="backdrop", rotation_center=(240, 180), image=MediaPayload(PIXEL))
    stage.costumes = ListValue(contents=[backdrop])
    stage.costume = backdrop

    cat = project.add_sprite(Sprite(name="Cat", x=10, y=-20, heading=45))
    meow = Costume(name="meow", rotation_center=(32, 32), image=MediaPayload(PIXEL))
    cat.costumes = ListValue(contents=[meow, backdrop])
    cat.costume = meow
    cat.sounds = ListValue(contents=[Sound(name="pop", audio=MediaPayload(CLICK))])

    # ping and pong call each other
    ping = define(cat, "ping %n", n=("%n", "3"))
    pong = define(cat, "pong %n", n=("%n", ""))
    give_body(ping, cat, pong.block_instance())
    give_body(pong, cat, make_block("forward", "1"), ping.block_instance())

    shared = ListValue(contents=["a", "b & c"])
    cat.variables.vars["items"] = shared
    cat.variables.vars["adder"] = Context(
        expression=Script(blocks=[make_block("reportSum", "1", "2")]),
        inputs=["x"],
        receiver=cat,
        is_lambda=True,
    )
    cat.scripts.append(
        Script(
            blocks=[
                make_block("receiveGo"),
                make_block("forward", "10"),
                ping.block_instance(),
                make_block("doRepeat", "3", Script(blocks=[make_block("turn", "15")])),
                make_block("doSayFor", make_block("reportSum", "1", "2"), "2"),
                make_block("doSetVar", "score", Block.variable("items")),
            ],
            x=20,
            y=30,
        )
    )

    stage.variables.vars["same items"] = shared
    stage.variables.vars["score"] = "0"
    stage.scripts.append(Script(blocks=[make_block("receiveMessage", "go"), make_block("doBroadcast", "go")], x=5, y=5))
    stage.watchers.append(Watcher(label="score", getter="score", target=stage.variables, is_variable=True, x=5, y=5))
    stage.watchers.append(Watcher(label="x position", getter="xPosition", target=cat, x=5, y=30, hidden=True))

    project.global_variables.vars["greeting"] = "<hello>"
    return project


def document(stage: str = "", sprites: str = "", variables: str = "", scripts: str = "", version: str = "1", extra: str = "") -> str:
    """Wrap stage sections in the smallest document the loader accepts."""
    return (
        f'<project name="doc" version="{version}">'
        f"<stage>{stage}<sprites>{sprites}</sprites>"
        f"<variables>{variables}</variables><scripts>{scripts}</scripts></stage>"
        f"{extra}</project>"
    )


@pytest.fixture
def project() -> Project:
    return build_project()
