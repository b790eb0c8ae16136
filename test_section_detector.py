import pytest

from cell_values import Grid
from section_detector import (
    IMPLICIT_SECTION_TITLE,
    ITEM,
    SECTION,
    ColumnLayout,
    classify_number,
    detect_sections,
    find_header_row,
    is_section_marker,
    locate_columns,
)


def numbered(rows):
    """Rows of (number, description[, value]) placed in columns B, C, D."""
    return Grid.from_values([[None] + list(row) for row in rows])


LAYOUT = ColumnLayout(number_col=2, description_col=3)


@pytest.mark.parametrize("text, kind, parts", [
    ("1", SECTION, (1,)),
    ("12.", SECTION, (12,)),
    ("1.1", ITEM, (1, 1)),
    ("2.10", ITEM, (2, 10)),
    ("1.2.3", ITEM, (1, 2, 3)),
])
def test_classify_number(text, kind, parts):
    token = classify_number(text)
    assert token.kind == kind
    assert token.parts == parts


@pytest.mark.parametrize("text", ["", "1.a", "1..2", "Cell 1", "A1"])
def test_classify_number_rejects(text):
    assert classify_number(text) is None


def test_section_marker_needs_matching_lookahead():
    assert is_section_marker(classify_number("2"), classify_number("2.1"))
    assert not is_section_marker(classify_number("2"), classify_number("3.1"))
    assert not is_section_marker(classify_number("2"), classify_number("3"))
    assert not is_section_marker(classify_number("2"), None)
    assert not is_section_marker(classify_number("2.1"), classify_number("2.2"))


@pytest.mark.parametrize("rows", [
    [("1", "General"), ("1.1", "Check A"), ("1.2", "Check B"), ("2", "Electrical"), ("2.1", "Check C")],
    [(1, "General"), (1.1, "Check A"), (1.2, "Check B"), (2, "Electrical"), (2.1, "Check C")],
])
def test_numbering_grammar(rows):
    result = detect_sections(numbered(rows), 1, LAYOUT)

    assert [s.title for s in result.sections] == ["General", "Electrical"]
    assert [[i.label for i in s.items] for s in result.sections] == [["Check A", "Check B"], ["Check C"]]
    assert [i.number for i in result.sections[0].items] == ["1.1", "1.2"]
    assert result.warnings == []


def test_integer_label_without_items_is_not_a_section():
    rows = [("1", "General"), ("1.1", "Check A"), ("5", "Spare parts list"), ("1.2", "Check B")]
    result = detect_sections(numbered(rows), 1, LAYOUT)

    assert len(result.sections) == 1
    assert [i.label for i in result.sections[0].items] == ["Check A", "Check B"]


def test_blank_rows_do_not_break_lookahead():
    rows = [("1", "General"), (None, None), ("1.1", "Check A")]
    result = detect_sections(numbered(rows), 1, LAYOUT)
    assert [s.title for s in result.sections] == ["General"]


def test_item_before_any_section_is_skipped_with_warning(capsys):
    rows = [("1.1", "Orphan"), ("2", "Cleaning"), ("2.1", "Clean panels")]
    result = detect_sections(numbered(rows), 1, LAYOUT)

    assert len(result.sections) == 1
    assert [i.label for i in result.sections[0].items] == ["Clean panels"]
    assert any("before any section" in w for w in result.warnings)
    assert "before any section" in capsys.readouterr().out


def test_malformed_number_is_skipped_with_warning():
    rows = [("1", "General"), ("1.1", "Check A"), ("1..2", "Typo row"), ("1.3", "Check C")]
    result = detect_sections(numbered(rows), 1, LAYOUT)

    assert [i.label for i in result.sections[0].items] == ["Check A", "Check C"]
    assert any("malformed" in w for w in result.warnings)


def test_item_without_description_is_skipped():
    rows = [("1", "General"), ("1.1", None), ("1.2", "Check B")]
    result = detect_sections(numbered(rows), 1, LAYOUT)

    assert [i.label for i in result.sections[0].items] == ["Check B"]
    assert len(result.warnings) == 1


def test_untitled_section_gets_default_title():
    grid = numbered([("3", None), ("3.1", "Check earthing")])
    result = detect_sections(grid, 1, LAYOUT)
    assert result.sections[0].title == "Section 3"


def test_sequential_numbering_forms_implicit_section():
    rows = [("1", "Clean panels"), ("2", "Check fuses"), ("3", "Tighten terminals")]
    result = detect_sections(numbered(rows), 1, LAYOUT)

    assert [s.title for s in result.sections] == [IMPLICIT_SECTION_TITLE]
    assert len(result.sections[0].items) == 3


def test_value_text_comes_from_value_column():
    rows = [("1", "Voltages"), ("1.1", "Phase L1", "{value} V")]
    layout = ColumnLayout(number_col=2, description_col=3, value_col=4)
    result = detect_sections(numbered(rows), 1, layout)
    assert result.sections[0].items[0].value_text == "{value} V"


def test_value_text_falls_back_to_cells_right_of_description():
    rows = [("1", "Voltages"), ("1.1", "Phase L1", None, "{value}")]
    result = detect_sections(numbered(rows), 1, LAYOUT)
    assert result.sections[0].items[0].value_text == "{value}"


def test_max_rows_stops_the_walk():
    rows = [("1", "General"), ("1.1", "Check A"), ("1.2", "Check B")]
    result = detect_sections(numbered(rows), 1, LAYOUT, max_rows=2)
    assert [i.label for i in result.sections[0].items] == ["Check A"]


def test_find_header_row_and_columns():
    grid = Grid.from_values([
        ["Inspection of Energy meter"],
        [None, "No.", "Description", "Value (V)"],
        [None, "1", "Battery checks"],
        [None, "1.1", "Check terminals"],
    ])
    header_row = find_header_row(grid)
    assert header_row == 2

    layout = locate_columns(grid, header_row)
    assert layout == ColumnLayout(number_col=2, description_col=3, value_col=4, value_header="Value (V)")


def test_locate_columns_probes_shifted_numbering():
    grid = Grid.from_values([
        [None, None, None, None],
        [None, None, "1", None, "Inverter housing"],
        [None, None, "1.1", None, "Check door seals"],
    ])
    layout = locate_columns(grid, header_row=None)
    assert (layout.number_col, layout.description_col) == (3, 5)


def test_value_header_becomes_section_context():
    rows = [("1", "Voltages"), ("1.1", "Phase L1", "{value}")]
    layout = ColumnLayout(number_col=2, description_col=3, value_col=4, value_header="Reading (V)")
    result = detect_sections(numbered(rows), 1, layout)
    assert result.sections[0].context == "Reading (V)"
