"""
Test console harness - scripted stdin through main()
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import json

import pytest

import main as console


@pytest.fixture
def form_path(tmp_path):
    path = tmp_path / "pizza.json"
    path.write_text(json.dumps({
        "name": "Pizza",
        "fields": [
            {"name": "Size", "kind": "enum", "values": ["Small", "Large"]},
            {"name": "Topping", "kind": "enum_list", "values": ["Cheese", "Pepperoni"]},
        ],
    }), encoding="utf-8")
    return path


def scripted_input(monkeypatch, answers):
    answers = iter(answers)
    monkeypatch.setattr("builtins.input", lambda prompt="": next(answers))


def test_console_completes_form(form_path, monkeypatch, capsys):
    scripted_input(monkeypatch, ["2", "cheese and pepperoni", "y"])
    assert console.main([str(form_path)]) == 0

    out = capsys.readouterr().out
    assert "FORM: Pizza" in out
    assert "Please select a size (1. Small, 2. Large)" in out
    assert '"Topping": [\n    "Cheese",\n    "Pepperoni"\n  ]' in out


def test_console_quit(form_path, monkeypatch, capsys):
    scripted_input(monkeypatch, ["quit"])
    assert console.main([str(form_path)]) == 0
    out = capsys.readouterr().out
    assert "Form cancelled." in out
    assert "RESULT" not in out


def test_console_end_of_input(form_path, monkeypatch, capsys):
    def no_more_input(prompt=""):
        raise EOFError
    monkeypatch.setattr("builtins.input", no_more_input)
    assert console.main([str(form_path)]) == 1
    assert "Form interrupted by user" in capsys.readouterr().out


def test_console_missing_form(tmp_path, capsys):
    assert console.main([str(tmp_path / "missing.json")]) == 1
    assert "Failed to load form" in capsys.readouterr().out


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
