import pytest
from openpyxl import Workbook


def _write_workbook(path, cells, merges=(), title="Checklist"):
    wb = Workbook()
    ws = wb.active
    ws.title = title
    for ref, value in cells.items():
        ws[ref] = value
    for ref in merges:
        ws.merge_cells(ref)
    wb.save(path)
    return str(path)


@pytest.fixture
def workbook_factory(tmp_path):
    """Create an .xlsx in tmp_path from {"A1": value} and merge ranges."""
    def factory(name, cells, merges=()):
        return _write_workbook(tmp_path / name, cells, merges)
    return factory


@pytest.fixture
def energy_meter_cells():
    return {
        "A1": "Plant:",
        "B1": "WITKOP SOLAR PLANT",
        "A3": "PM-014",
        "F3": "Inspection of Energy Meter - Monthly",
        "B5": "No.",
        "C5": "Description",
        "D5": "Value",
        "B6": "1",
        "C6": "Visual inspection",
        "B7": "1.1",
        "C7": "Check enclosure for damage",
        "B8": "1.2",
        "C8": "Record supply voltage",
        "D8": "{value} V",
        "B9": "2",
        "C9": "Communication",
        "B10": "2.1",
        "C10": "Check modem link",
    }


@pytest.fixture
def battery_cells():
    cells = {
        "A3": "PM-021",
        "F3": "Substation Batteries Inspection",
        "E11": "Battery Bank A",
        "G11": "Battery Bank B",
        "E13": "No.",
        "F13": "Value",
        "G13": "No.",
        "H13": "Value",
    }
    for i in range(1, 44):
        row = 13 + i
        cells[f"E{row}"] = f"Cell {i}"
        cells[f"F{row}"] = "{value}"
        cells[f"G{row}"] = f"Cell {i + 43}"
        cells[f"H{row}"] = "{value}"
    return cells
