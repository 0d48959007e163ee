import pytest

from markup import parse
from media import MediaPayload
from model import (
    Block,
    CommandSlot,
    Context,
    Costume,
    CustomBlockDefinition,
    ListValue,
    ObsoleteBlock,
    Project,
    Script,
    Sprite,
    Watcher,
)
from serializer import VERSION, SerializationError, Serializer, serialize
from tests.conftest import make_block


def test_primitives_are_literals():
    serializer = Serializer()
    assert serializer.serialize("a < b") == "<l>a &lt; b</l>"
    assert serializer.serialize(4.0) == "<l>4</l>"
    assert serializer.serialize(None) == ""


def test_repeated_identity_becomes_reference():
    shared = ListValue(contents=[1])
    markup = serialize([shared, shared])
    assert markup == '<list id="1"><item><l>1</l></item></list><ref id="1"/>'


def test_nested_ids_belong_to_their_own_object():
    inner = ListValue(contents=["x"])
    outer = ListValue(contents=[inner, "y"])
    markup = serialize(outer)
    assert markup == '<list id="1"><item><list id="2"><item><l>x</l></item></list></item><item><l>y</l></item></list>'


def test_self_containing_list_terminates():
    loop = ListValue()
    loop.contents.append(loop)
    assert serialize(loop) == '<list id="1"><item><ref id="1"/></item></list>'


def test_linked_list_is_flagged():
    markup = serialize(ListValue.linked(["a", "b"]))
    assert markup == '<list linked="linked" id="1"><item><l>a</l></item><item><l>b</l></item></list>'


def test_registry_is_per_call():
    shared = ListValue()
    serializer = Serializer()
    first = serializer.serialize(shared)
    assert serializer.serialize(shared) == first
    assert not serializer.is_stored(shared)


def test_unknown_kind_raises():
    with pytest.raises(SerializationError):
        serialize(object())


def test_costume_attributes_and_id():
    costume = Costume(name='big "cat"', rotation_center=(32, 16.5), image=MediaPayload("data:,x"))
    assert serialize(costume) == '<costume name="big &quot;cat&quot;" center-x="32" center-y="16.5" image="data:,x" id="1"/>'


def test_blocks_and_slots():
    block = make_block("doIfElse", make_block("reportTrue"), Script(blocks=[make_block("forward", "5")]))
    assert serialize(block) == (
        '<block s="doIfElse"><block s="reportTrue"></block>'
        '<script><block s="forward"><l>5</l></block></script>'
        "<script></script></block>"
    )


def test_reporter_in_command_slot_is_autolambda():
    block = make_block("evaluate")
    block.inputs[0].nested = make_block("reportSum", "1", "2")
    markup = serialize(block)
    assert markup.startswith('<block s="evaluate"><autolambda><block s="reportSum">')
    assert markup.endswith("</autolambda><list></list></block>")


def test_variadic_and_color_slots():
    assert serialize(make_block("reportNewList")) == '<block s="reportNewList"><list><l></l></list></block>'
    assert serialize(make_block("setColor")) == '<block s="setColor"><color>145,26,68,1</color></block>'
    assert serialize(Block.variable("a & b")) == '<block var="a &amp; b"/>'


def test_context_receiver_only_as_reference():
    cat = Sprite(name="Cat")
    context = Context(expression=Script(blocks=[make_block("xPosition")]), receiver=cat, is_lambda=True)
    alone = serialize(context)
    assert "<receiver></receiver>" in alone
    assert alone.startswith('<context lambda="lambda" id="1">')

    cat.variables.vars["ring"] = context
    markup = serialize(cat)
    assert '<receiver><ref id="1"/></receiver>' in markup


def test_obsolete_block_keeps_original_markup():
    block = ObsoleteBlock(spec="fly", original_selector="fly", scope=None, preserved=["<l>3</l>"])
    assert serialize(block) == '<block s="fly"><l>3</l></block>'
    assert serialize(ObsoleteBlock()) == '<block s="nop"/>'


def test_custom_block_scope(project):
    cat = project.sprite("Cat")
    ping = cat.custom_blocks[0]
    scoped = ping.block_instance()
    assert serialize(scoped) == '<custom-block s="ping %n" scope="Cat"><l>3</l></custom-block>'
    scoped.is_global = True
    assert serialize(scoped) == '<custom-block s="ping %n"><l>3</l></custom-block>'


def test_watchers():
    project = Project()
    watcher = Watcher(label="score", getter="score", target=project.stage.variables, is_variable=True, hidden=True)
    assert serialize(watcher) == '<watcher scope="Stage" var="score" x="0" y="0" color="243,118,29" hidden="hidden"/>'
    global_watcher = Watcher(label="g", getter="g", target=project.global_variables, is_variable=True)
    assert serialize(global_watcher) == '<watcher var="g" x="0" y="0" color="243,118,29"/>'


def test_project_layout_orders_sections(project):
    markup = serialize(project)
    root = parse(markup)
    assert root.get("version") == str(VERSION)
    assert [child.name for child in root.elements()] == ["notes", "thumbnail", "stage", "variables"]
    stage = root.require("stage")
    assert [child.name for child in stage.elements()] == [
        "pentrails",
        "costumes",
        "sounds",
        "blocks",
        "sprites",
        "variables",
        "scripts",
    ]
    sprites = stage.require("sprites")
    assert [child.name for child in sprites.elements()] == ["sprite", "watcher", "watcher"]
    sprite = sprites.require("sprite")
    assert [child.name for child in sprite.elements()] == ["costumes", "sounds", "blocks", "variables", "scripts"]


def test_ids_are_unique_and_references_follow_definitions(project):
    root = parse(serialize(project))
    seen = set()

    def walk(element):
        if element.name == "ref":
            assert element.get("id") in seen
        elif element.has("id"):
            assert element.get("id") not in seen
            seen.add(element.get("id"))
        for child in element.elements():
            walk(child)

    walk(root)
    assert seen


def test_command_slot_empty_script():
    slot = CommandSlot()
    assert serialize(slot) == "<script></script>"


def test_sprites_held_as_values_are_references():
    project = Project()
    first = project.add_sprite(Sprite(name="A"))
    second = project.add_sprite(Sprite(name="B"))
    first.variables.vars["friend"] = second
    markup = serialize(project)
    assert '<variable name="friend"><ref id="3"/></variable>' in markup
    assert markup.count('<sprite name="B"') == 1
    assert 'name="B" x="0" y="0" heading="90" costume="0" color="80,80,80" id="3"' in markup


def test_custom_block_owner_comes_from_the_project_not_the_body():
    project = Project()
    cat = project.add_sprite(Sprite(name="Cat"))
    jump = CustomBlockDefinition(spec="jump %n")
    cat.custom_blocks.append(jump)
    cat.scripts.append(Script(blocks=[jump.block_instance()]))
    markup = serialize(project)
    assert '<custom-block s="jump %s" scope="Cat"><l></l></custom-block>' in markup


def test_global_definitions_are_marked():
    shout = CustomBlockDefinition(spec="shout %s", is_global=True)
    assert serialize(shout).startswith('<block-definition s="shout %s" type="command" category="other" global="global">')
    assert 'global="global"' not in serialize(CustomBlockDefinition(spec="quiet"))
