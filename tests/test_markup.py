import pytest

from markup import SNIPPET_LENGTH, Element, ParseError, SchemaError, Text, parse


def test_parse_nested_elements_and_attributes():
    root = parse('<project name="demo" version="1"><notes>hi</notes><stage/></project>')
    assert root.name == "project"
    assert root.attributes == {"name": "demo", "version": "1"}
    assert [child.name for child in root.elements()] == ["notes", "stage"]
    assert root.require("notes").text_content() == "hi"
    assert root.require("stage").children == []


def test_attribute_values_and_text_are_unescaped():
    root = parse("<l a='x &quot;y&quot;'>&lt;b&gt; &amp; c</l>")
    assert root.get("a") == 'x "y"'
    assert root.text_content() == "<b> & c"


def test_single_and_double_quotes_with_whitespace_around_equals():
    root = parse("<x a = \"1\" b='2'/>")
    assert root.get("a") == "1"
    assert root.get("b") == "2"


def test_text_nodes_are_kept_between_elements():
    root = parse("<a> <b/> </a>")
    assert isinstance(root.children[0], Text)
    assert root.first_element().name == "b"
    assert len(root.children) == 3


def test_xml_declaration_and_leading_whitespace_are_skipped():
    root = parse('\n<?xml version="1.0"?>\n<project/>')
    assert root.name == "project"


def test_missing_required_child_raises_schema_error():
    root = parse("<project><stage/></project>")
    with pytest.raises(SchemaError) as info:
        root.require("notes")
    assert info.value.name == "notes"
    assert info.value.parent == "project"
    assert "<notes>" in str(info.value)


def test_all_and_element_lookups():
    root = parse("<a><i>1</i><j/><i>2</i></a>")
    assert [item.text_content() for item in root.all("i")] == ["1", "2"]
    assert root.element("missing") is None
    assert root.has("x") is False


@pytest.mark.parametrize(
    "source, message",
    [
        ('<a b"1"/>', 'Expected "=" after attribute name'),
        ("<a b=1/>", "Expected single- or double-quoted attribute value"),
        ('<a b="1/>', "Unterminated attribute value"),
        ("<a/ >", 'Expected ">" after "/" in empty tag'),
        ("<a><b></b>", "Unexpected end of input, element is not closed"),
        ('<a b="1"', "Unexpected end of input in tag"),
        ("< a/>", "Expected a tag name"),
        ("just text", "Expected a root element"),
        ('<a ="x"/>', "Expected an attribute name"),
    ],
)
def test_malformed_documents_raise_parse_error(source, message):
    with pytest.raises(ParseError) as info:
        parse(source)
    assert info.value.message == message
    assert message in str(info.value)


def test_parse_error_reports_tag_attribute_and_position():
    with pytest.raises(ParseError) as info:
        parse('<project>\n<stage name=Stage/></project>')
    error = info.value
    assert error.tag == "stage"
    assert error.attribute == "name"
    assert error.position[0] == 2
    assert "attribute 'name' of <stage>" in str(error)


def test_parse_error_snippet_is_bounded():
    source = "<a b=" + "x" * 200
    with pytest.raises(ParseError) as info:
        parse(source)
    assert info.value.snippet.endswith("...")
    assert len(info.value.snippet) == SNIPPET_LENGTH + 3


def test_to_markup_reproduces_equivalent_markup():
    source = '<block s="doIf"><l>1 &lt; 2</l><script/></block>'
    element = parse(source)
    assert element.to_markup() == source
    assert parse(element.to_markup()) == element


def test_to_markup_escapes_attribute_quotes():
    element = Element(name="l", attributes={"v": "say \"hi\""}, children=[Text("a&b")])
    assert element.to_markup() == '<l v="say &quot;hi&quot;">a&amp;b</l>'


def test_empty_attribute_name_is_rejected():
    with pytest.raises(ParseError) as info:
        parse('<stage ="x"/>')
    assert info.value.tag == "stage"
