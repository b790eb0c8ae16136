import pytest

from field_synthesizer import (
    PASS_FAIL,
    PASS_FAIL_WITH_MEASUREMENT,
    classify_item,
    find_unit_hint,
    has_placeholder,
)


def test_plain_item_is_pass_fail():
    result = classify_item("Check enclosure for damage", "")
    assert result.type == PASS_FAIL
    assert result.measurement_fields == ()


def test_text_without_placeholder_is_pass_fail():
    assert classify_item("Check fuses", "OK / Not OK").type == PASS_FAIL


@pytest.mark.parametrize("text", ["{value}", "{ VALUE } V", "Reading: {Value}"])
def test_has_placeholder(text):
    assert has_placeholder(text)


@pytest.mark.parametrize("text", [None, "", "value", "{values}", "{}"])
def test_has_no_placeholder(text):
    assert not has_placeholder(text)


def test_placeholder_without_unit():
    result = classify_item("Cell 1", "{value}")
    assert result.type == PASS_FAIL_WITH_MEASUREMENT
    field = result.measurement_fields[0]
    assert field.to_dict() == {
        "id": "value_1",
        "label": "Cell 1",
        "type": "number",
        "unit": "",
        "required": True,
    }


@pytest.mark.parametrize("value_text, unit", [
    ("{value} V", "V"),
    ("{ VALUE } V", "V"),
    ("{value} kWh", "kWh"),
    ("{value}Vdc", "VDC"),
    ("{value} %", "%"),
    ("{value} (mA)", "mA"),
    ("Reading (Hz): {value}", "Hz"),
])
def test_unit_after_or_around_placeholder(value_text, unit):
    assert find_unit_hint(value_text) == unit


def test_word_after_placeholder_is_not_a_unit():
    result = classify_item("Record reading", "{value} and more")
    assert result.measurement_fields[0].unit == ""
    assert result.measurement_fields[0].label == "Record reading"


def test_unit_appended_to_field_label():
    result = classify_item("Record supply voltage", "{value} V")
    field = result.measurement_fields[0]
    assert field.unit == "V"
    assert field.label == "Record supply voltage (V)"


def test_unit_from_label_is_not_repeated():
    field = classify_item("Voltage (V)", "{value}").measurement_fields[0]
    assert field.unit == "V"
    assert field.label == "Voltage (V)"


def test_unit_from_context():
    field = classify_item("Cell 4", "{value}", context_text="Voltage (V)").measurement_fields[0]
    assert field.unit == "V"
    assert field.label == "Cell 4 (V)"
