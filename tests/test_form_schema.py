"""
Test Form Schema - builder validation and JSON loading

Every declaration problem must be reported in one SchemaError.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import json
from pathlib import Path

import pytest

from formflow.contracts import NO_PREFERENCE, FieldKind, Term
from formflow.core.form_schema import FormBuilder, load_form_schema
from formflow.errors import SchemaError
from formflow.utils.templates import TemplateUsage

SANDWICH_FORM = Path(__file__).parent.parent / "data" / "sandwich_form.json"


# ========== Builder ==========

def test_builder_builds_fields_in_order():
    schema = (
        FormBuilder("Pizza")
        .field("Size", "enum", values=["Small", "Large"])
        .field("Topping", FieldKind.ENUM_LIST, values=["Cheese", "Pepperoni"])
        .build()
    )
    assert schema.field_names == ["Size", "Topping"]
    assert len(schema) == 2
    assert "Size" in schema
    assert schema.index("Topping") == 1

    size = schema.field("Size")
    assert size.kind == FieldKind.ENUM
    assert size.description == "Size"
    assert [v.name for v in size.values] == ["Small", "Large"]
    assert [v.ordinal for v in size.values] == [1, 2]
    assert Term.phrase("size") in size.terms


def test_unknown_field_lookup():
    schema = FormBuilder().field("Size", "enum", values=["Small"]).build()
    assert schema.get("Colour") is None
    with pytest.raises(KeyError):
        schema.field("Colour")


def test_value_declarations():
    schema = (
        FormBuilder("Sandwich")
        .field("Sandwich", "enum", values=[
            "BLT",
            {"name": "RotisserieStyleChicken", "terms": [{"regex": r"rotis\w*"}]},
            {"name": "Veggie", "description": "Veggie Delite", "terms": ["vegetarian"]},
        ])
        .build()
    )
    field = schema.field("Sandwich")
    chicken = field.value_spec("RotisserieStyleChicken")
    assert chicken.description == "Rotisserie Style Chicken"
    assert chicken.terms[0] == Term.regex(r"rotis\w*")

    veggie = field.value_spec("Veggie")
    assert veggie.description == "Veggie Delite"
    assert Term.phrase("vegetarian") in veggie.terms
    assert Term.phrase("veggie delite") in veggie.terms


def test_optional_enum_gets_no_preference_choice():
    schema = FormBuilder().field("Cheese", "enum", values=["American", "Pepperjack"], optional=True).build()
    values = schema.field("Cheese").values
    assert values[-1].name == NO_PREFERENCE
    assert values[-1].description == "No Preference"
    assert values[-1].is_no_preference
    assert values[-1].ordinal == 3


def test_prompt_and_template_overrides():
    schema = (
        FormBuilder("Pizza")
        .field("Size", "enum", values=["Small", "Large"],
               prompt="What {&} of pizza? {||}",
               templates={"not_understood": ["No {0}.", "Huh, {0}?"]})
        .templates({"completed": "Enjoy your {Size} pizza."})
        .build()
    )
    size = schema.field("Size")
    assert size.prompt.usage == TemplateUsage.SELECT_ONE
    assert size.prompt.patterns == ("What {&} of pizza? {||}",)
    assert size.template_for(TemplateUsage.NOT_UNDERSTOOD).patterns == ("No {0}.", "Huh, {0}?")
    assert schema.template_overrides[TemplateUsage.COMPLETED].patterns == ("Enjoy your {Size} pizza.",)


def test_dsl_active_condition_becomes_predicate():
    schema = (
        FormBuilder()
        .field("Address", "string", optional=True)
        .field("Rating", "floating", min_value=1, max_value=5, active={"exists": "Address"})
        .build()
    )
    rating = schema.field("Rating")
    assert rating.active({"Address": "1 Main St"})
    assert not rating.active({})


# ========== Validation ==========

def test_all_problems_reported_together():
    builder = (
        FormBuilder("Broken")
        .field("Size", "enum")
        .field("Size", "string")
        .field("Count", "integral", min_value=5, max_value=1)
        .field("Colour", "rainbow")
        .field("_", "string")
    )
    with pytest.raises(SchemaError) as excinfo:
        builder.build()

    problems = excinfo.value.problems
    assert "Duplicate field name 'Size'" in problems
    assert "Enum field 'Size' has no values" in problems
    assert "Field 'Count' min_value 5 is greater than max_value 1" in problems
    assert any("invalid kind 'rainbow'" in problem for problem in problems)
    assert "Field '_' has no terms" in problems
    assert str(excinfo.value).startswith("Form schema validation failed:")


def test_empty_form():
    with pytest.raises(SchemaError, match="Form has no fields"):
        FormBuilder().build()


def test_value_problems():
    builder = (
        FormBuilder()
        .field("Size", "enum", values=["Small", "Small", NO_PREFERENCE])
        .field("Count", "integral", values=["One"])
        .field("Crust", "enum", values=[{"name": "Thin", "terms": [{"regex": "thin("}]}])
    )
    with pytest.raises(SchemaError) as excinfo:
        builder.build()
    problems = excinfo.value.problems
    assert "Field 'Size' has duplicate value 'Small'" in problems
    assert f"Field 'Size' value name '{NO_PREFERENCE}' is reserved" in problems
    assert "Field 'Count' of kind 'integral' cannot declare values" in problems
    assert any("invalid regex term" in problem for problem in problems)


def test_limit_problems():
    builder = (
        FormBuilder()
        .field("Size", "enum", values=["Small"], min_value=1)
        .field("Name", "string", min_length=5, max_length=2)
        .field("Count", "integral", max_length=3)
    )
    with pytest.raises(SchemaError) as excinfo:
        builder.build()
    problems = excinfo.value.problems
    assert "Field 'Size' has numeric limits but is not numeric" in problems
    assert "Field 'Name' min_length 5 is greater than max_length 2" in problems
    assert "Field 'Count' has length limits but is not a string" in problems


def test_condition_problems():
    builder = (
        FormBuilder()
        .field("Tip", "floating", active={"exists": "Address"})
        .field("Address", "string")
        .field("Notes", "string", active={"exists": "Colour"})
        .field("Gift", "string", active={"between": ["Tip", 1, 2]})
    )
    with pytest.raises(SchemaError) as excinfo:
        builder.build()
    problems = excinfo.value.problems
    assert "Field 'Tip' active condition references 'Address', which is not an earlier field" in problems
    assert "Field 'Notes' active condition references undefined field 'Colour'" in problems
    assert "Field 'Gift' active condition uses unknown operator(s) ['between']" in problems


def test_template_problems():
    builder = (
        FormBuilder()
        .field("Size", "enum", values=["Small"], prompt="Pick {&Colour}")
        .templates({"completed": "Done {", "dancing": "x"})
    )
    with pytest.raises(SchemaError) as excinfo:
        builder.build()
    problems = excinfo.value.problems
    assert any("Unknown field 'Colour'" in problem for problem in problems)
    assert any("Unterminated element" in problem for problem in problems)
    assert any("Invalid template usage: 'dancing'" in problem for problem in problems)


def test_template_argument_problems():
    """A pattern may only use the positional arguments its usage receives"""
    builder = (
        FormBuilder()
        .field("Size", "enum", values=["Small"], templates={"not_understood": "No {1}."})
        .field("Count", "integral", prompt="Count from {0} to {2}?")
        .field("Name", "string", prompt="Name ({0}-{1} letters)?")
    )
    with pytest.raises(SchemaError) as excinfo:
        builder.build()
    problems = excinfo.value.problems
    assert len(problems) == 2
    assert any("template 'not_understood'" in p and "Argument {1} is not supplied" in p for p in problems)
    assert any("Argument {2} is not supplied" in p for p in problems)


# ========== JSON loading ==========

def test_load_sandwich_form():
    schema = load_form_schema(SANDWICH_FORM)
    assert schema.name == "SandwichOrder"
    assert schema.field_names == [
        "Sandwich", "Length", "Bread", "Cheese", "Toppings", "Sauces",
        "DeliveryAddress", "DeliveryTime", "Rating",
    ]
    assert schema.field("Cheese").values[-1].name == NO_PREFERENCE
    assert schema.field("Toppings").kind == FieldKind.ENUM_LIST
    assert schema.field("Rating").active({"DeliveryAddress": "1 Main St"})
    assert len(schema.template_overrides[TemplateUsage.NOT_UNDERSTOOD].patterns) == 2


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_form_schema(tmp_path / "missing.json")


def test_load_invalid_json(tmp_path):
    path = tmp_path / "form.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(SchemaError, match="not valid JSON"):
        load_form_schema(path)


def test_load_structure_problems(tmp_path):
    path = tmp_path / "form.json"
    path.write_text(json.dumps({
        "fields": [
            {"name": "Size"},
            {"name": "Count", "kind": "integral", "maximum": 3},
        ]
    }), encoding="utf-8")
    with pytest.raises(SchemaError) as excinfo:
        load_form_schema(path)
    problems = excinfo.value.problems
    assert "Field at index 0 must be an object with 'name' and 'kind'" in problems
    assert "Field 'Count' has unknown keys ['maximum']" in problems


def test_load_requires_fields_list(tmp_path):
    path = tmp_path / "form.json"
    path.write_text(json.dumps({"name": "Empty"}), encoding="utf-8")
    with pytest.raises(SchemaError, match="'fields' list"):
        load_form_schema(path)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
