"""
Form Schema - Build and validate the read-only field declarations

Responsibilities:
- FormBuilder: explicit, host-driven construction of FieldSpec/ValueSpec
- Term generation for every field and value at build time
- Implicit "No Preference" choice for optional enum fields
- Validation of the whole declaration (names, values, terms, limits,
  predicates, templates) with every problem reported at once
- load_form_schema(): the same declarations from a JSON file

Design principles:
- Fail fast: a schema that builds is safe to run
- Built once at startup, shared read-only by every conversation
- Aggregated errors: one SchemaError lists every problem

Example:
    schema = (
        FormBuilder("Pizza")
        .field("Size", "enum", values=["Small", "Large"])
        .field("Topping", "enum_list", values=["Cheese", "Pepperoni"])
        .build()
    )
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from formflow.configuration import NO_PREFERENCE_TERMS
from formflow.contracts import NO_PREFERENCE, FieldKind, FieldSpec, Term, ValueSpec
from formflow.core.field_selector import DSL_OPERATORS, dsl_field_references, make_predicate
from formflow.core.pattern_renderer import validate_pattern
from formflow.core.term_generator import build_terms
from formflow.errors import SchemaError, TemplateError
from formflow.utils.templates import USAGE_ARGS, Template, TemplateUsage, make_template, validate_usage
from formflow.utils.text_helpers import describe_name

logger = logging.getLogger(__name__)

NO_PREFERENCE_DESCRIPTION = "No Preference"


class FormSchema:
    """
    Ordered, read-only collection of FieldSpec.

    Attributes:
        name: Form name (for logging and hosts)
        fields: FieldSpec tuple in declaration order
        template_overrides: Form-wide template overrides (usage -> Template)
    """

    def __init__(self, name: str, fields: Sequence[FieldSpec], template_overrides: Optional[Mapping[TemplateUsage, Template]] = None):
        self.name = name
        self.fields: Tuple[FieldSpec, ...] = tuple(fields)
        self.template_overrides: Dict[TemplateUsage, Template] = dict(template_overrides or {})
        self._by_name = {field.name: field for field in self.fields}

    def __iter__(self):
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    @property
    def field_names(self) -> List[str]:
        return [field.name for field in self.fields]

    def get(self, name: str) -> Optional[FieldSpec]:
        return self._by_name.get(name)

    def field(self, name: str) -> FieldSpec:
        """
        Look up a field by name.

        Raises:
            KeyError: If the field is not declared
        """
        if name not in self._by_name:
            raise KeyError(f"Unknown field: {name}")
        return self._by_name[name]

    def index(self, name: str) -> int:
        return self.field_names.index(name)

    def __repr__(self) -> str:
        return f"FormSchema({self.name!r}, fields={self.field_names})"


# ========================
# Builder
# ========================

ValueDecl = Union[str, Mapping[str, Any]]
TermDecl = Union[str, Term, Mapping[str, str]]
TemplateDecl = Union[str, Sequence[str], Template]


def _term_from_decl(decl: TermDecl) -> Term:
    """A declared term: phrase string, Term, or {"regex": "..."}."""
    if isinstance(decl, Term):
        return decl
    if isinstance(decl, str):
        return Term.phrase(decl)
    if isinstance(decl, Mapping) and "regex" in decl:
        return Term.regex(decl["regex"])
    raise TypeError(f"Invalid term declaration: {decl!r}")


class FormBuilder:
    """
    Explicit builder for FormSchema.

    Declarations are recorded as given; all checking happens in build()
    so every problem can be reported together.
    """

    def __init__(self, name: str = "form", max_phrase: Optional[int] = None,
                 no_preference_terms: Sequence[str] = NO_PREFERENCE_TERMS):
        """
        Initialize builder

        Args:
            name: Form name
            max_phrase: Longest generated n-gram (None = whole name)
            no_preference_terms: Words for the implicit No Preference choice
        """
        self.name = name
        self.max_phrase = max_phrase
        self.no_preference_terms = tuple(no_preference_terms)
        self._decls: List[Dict[str, Any]] = []
        self._templates: Dict[Any, TemplateDecl] = {}

    def field(
        self,
        name: str,
        kind: Union[FieldKind, str],
        values: Iterable[ValueDecl] = (),
        description: Optional[str] = None,
        terms: Iterable[TermDecl] = (),
        generate_terms: bool = True,
        optional: bool = False,
        active: Any = None,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
        prompt: Optional[TemplateDecl] = None,
        templates: Optional[Mapping[Any, TemplateDecl]] = None,
    ) -> "FormBuilder":
        """
        Declare a field. Returns self for chaining.

        Args:
            name: Unique field name, e.g. 'DeliveryAddress'
            kind: FieldKind or its value ('enum', 'enum_list', ...)
            values: Enum choices; names or dicts with name/description/
                terms/generate_terms
            description: Display text (default: name split into words)
            terms: Extra terms for jumping to the field; strings, Term or
                {"regex": ...}
            generate_terms: False uses declared terms only
            optional: Field may be left without a value
            active: Callable(values) -> bool, or a condition DSL dict
            min_value / max_value: Numeric limits (inclusive)
            min_length / max_length: String length limits (inclusive)
            prompt: Pattern(s) asking for this field
            templates: Per-field template overrides (usage -> pattern(s))
        """
        self._decls.append({
            "name": name,
            "kind": kind,
            "values": list(values),
            "description": description,
            "terms": list(terms),
            "generate_terms": generate_terms,
            "optional": optional,
            "active": active,
            "min_value": min_value,
            "max_value": max_value,
            "min_length": min_length,
            "max_length": max_length,
            "prompt": prompt,
            "templates": dict(templates or {}),
        })
        return self

    def templates(self, overrides: Mapping[Any, TemplateDecl]) -> "FormBuilder":
        """Form-wide template overrides (usage -> pattern(s))."""
        self._templates.update(overrides)
        return self

    # ---------- build ----------

    def build(self) -> FormSchema:
        """
        Validate declarations and build the schema.

        Checks:
        - at least one field, unique field names, known kinds
        - enum fields have unique values; other kinds have none
        - every field and value has at least one term; regexes compile
        - limits are consistent and apply to the field's kind
        - active conditions use known operators and refer to earlier fields
        - templates use known usages, parse, and refer to declared fields

        Returns:
            FormSchema

        Raises:
            SchemaError: Listing every problem found
        """
        problems: List[str] = []
        field_names = [decl["name"] for decl in self._decls]

        if not self._decls:
            problems.append("Form has no fields")

        seen = set()
        for name in field_names:
            if not isinstance(name, str) or not name:
                problems.append(f"Invalid field name: {name!r}")
            elif name in seen:
                problems.append(f"Duplicate field name '{name}'")
            seen.add(name)

        fields: List[FieldSpec] = []
        for position, decl in enumerate(self._decls):
            field = self._build_field(decl, field_names[:position], field_names, problems)
            if field is not None:
                fields.append(field)

        template_overrides: Dict[TemplateUsage, Template] = {}
        for usage, spec in self._templates.items():
            template = self._build_template(usage, spec, field_names, problems, owner="form")
            if template is not None:
                template_overrides[template.usage] = template

        if problems:
            logger.error(f"Form '{self.name}' failed validation with {len(problems)} problem(s)")
            raise SchemaError.from_problems(problems)

        schema = FormSchema(self.name, fields, template_overrides)
        logger.info(
            f"Form schema '{self.name}' built "
            f"({len(fields)} fields, {sum(len(f.values) for f in fields)} values)"
        )
        return schema

    def _build_field(self, decl: Dict[str, Any], earlier: List[str], all_names: List[str], problems: List[str]) -> Optional[FieldSpec]:
        name = decl["name"]
        if not isinstance(name, str) or not name:
            return None

        try:
            kind = FieldKind(decl["kind"])
        except ValueError:
            valid = [k.value for k in FieldKind]
            problems.append(f"Field '{name}' has invalid kind {decl['kind']!r}. Must be one of: {valid}")
            return None

        description = decl["description"] or describe_name(name)
        declared_terms = self._collect_terms(name, decl["terms"], problems)
        terms = build_terms(
            name,
            declared_terms,
            max_phrase=self.max_phrase,
            generate=decl["generate_terms"],
            extra_names=(description,) if decl["description"] else (),
        )
        if not terms:
            problems.append(f"Field '{name}' has no terms")

        values = self._build_values(name, kind, decl, problems)
        self._check_limits(name, kind, decl, problems)

        active = decl["active"]
        if isinstance(active, Mapping):
            self._check_condition(name, active, earlier, all_names, problems)
            active = make_predicate(dict(active))
        elif active is not None and not callable(active):
            problems.append(f"Field '{name}' active must be a callable or a condition dict")
            active = None

        prompt = None
        if decl["prompt"] is not None:
            prompt = self._build_template(self._asking_usage(kind), decl["prompt"], all_names, problems, owner=f"field '{name}' prompt")

        overrides = []
        for usage, spec in decl["templates"].items():
            template = self._build_template(usage, spec, all_names, problems, owner=f"field '{name}'")
            if template is not None:
                overrides.append((template.usage, template))

        return FieldSpec(
            name=name,
            kind=kind,
            description=description,
            terms=terms,
            values=values,
            optional=bool(decl["optional"]),
            active=active,
            min_value=decl["min_value"],
            max_value=decl["max_value"],
            min_length=decl["min_length"],
            max_length=decl["max_length"],
            prompt=prompt,
            templates=tuple(overrides),
        )

    @staticmethod
    def _asking_usage(kind: FieldKind) -> TemplateUsage:
        return {
            FieldKind.ENUM: TemplateUsage.SELECT_ONE,
            FieldKind.ENUM_LIST: TemplateUsage.SELECT_MANY,
            FieldKind.INTEGRAL: TemplateUsage.INTEGER,
            FieldKind.FLOATING: TemplateUsage.FLOAT,
            FieldKind.STRING: TemplateUsage.STRING,
            FieldKind.DATETIME: TemplateUsage.DATETIME,
        }[kind]

    @staticmethod
    def _collect_terms(owner: str, decls: Iterable[TermDecl], problems: List[str]) -> List[Term]:
        terms = []
        for decl in decls:
            try:
                term = _term_from_decl(decl)
            except TypeError as e:
                problems.append(f"'{owner}': {e}")
                continue
            if term.is_regex:
                try:
                    re.compile(term.pattern)
                except re.error as e:
                    problems.append(f"'{owner}' has invalid regex term {term.pattern!r}: {e}")
                    continue
            terms.append(term)
        return terms

    def _build_values(self, field_name: str, kind: FieldKind, decl: Dict[str, Any], problems: List[str]) -> Tuple[ValueSpec, ...]:
        raw_values = decl["values"]
        if kind not in (FieldKind.ENUM, FieldKind.ENUM_LIST):
            if raw_values:
                problems.append(f"Field '{field_name}' of kind '{kind.value}' cannot declare values")
            return ()
        if not raw_values:
            problems.append(f"Enum field '{field_name}' has no values")
            return ()

        values: List[ValueSpec] = []
        seen = set()
        for raw in raw_values:
            if isinstance(raw, str):
                raw = {"name": raw}
            if not isinstance(raw, Mapping) or not raw.get("name"):
                problems.append(f"Field '{field_name}' has invalid value declaration {raw!r}")
                continue

            value_name = raw["name"]
            if value_name in seen:
                problems.append(f"Field '{field_name}' has duplicate value '{value_name}'")
                continue
            if value_name == NO_PREFERENCE:
                problems.append(f"Field '{field_name}' value name '{NO_PREFERENCE}' is reserved")
                continue
            seen.add(value_name)

            owner = f"{field_name}.{value_name}"
            description = raw.get("description") or describe_name(value_name)
            terms = build_terms(
                value_name,
                self._collect_terms(owner, raw.get("terms", ()), problems),
                max_phrase=self.max_phrase,
                generate=raw.get("generate_terms", True),
                extra_names=(description,) if raw.get("description") else (),
            )
            if not terms:
                problems.append(f"Value '{owner}' has no terms")
            values.append(ValueSpec(name=value_name, description=description, terms=terms, ordinal=len(values) + 1))

        if decl["optional"] and values:
            values.append(ValueSpec(
                name=NO_PREFERENCE,
                description=NO_PREFERENCE_DESCRIPTION,
                terms=tuple(Term.phrase(t) for t in self.no_preference_terms),
                ordinal=len(values) + 1,
                is_no_preference=True,
            ))
        return tuple(values)

    @staticmethod
    def _check_limits(name: str, kind: FieldKind, decl: Dict[str, Any], problems: List[str]) -> None:
        low, high = decl["min_value"], decl["max_value"]
        if (low is not None or high is not None) and kind not in (FieldKind.INTEGRAL, FieldKind.FLOATING):
            problems.append(f"Field '{name}' has numeric limits but is not numeric")
        if low is not None and high is not None and low > high:
            problems.append(f"Field '{name}' min_value {low} is greater than max_value {high}")

        shortest, longest = decl["min_length"], decl["max_length"]
        if (shortest is not None or longest is not None) and kind != FieldKind.STRING:
            problems.append(f"Field '{name}' has length limits but is not a string")
        for label, limit in (("min_length", shortest), ("max_length", longest)):
            if limit is not None and (not isinstance(limit, int) or limit < 0):
                problems.append(f"Field '{name}' {label} must be a non-negative integer")
        if isinstance(shortest, int) and isinstance(longest, int) and shortest > longest:
            problems.append(f"Field '{name}' min_length {shortest} is greater than max_length {longest}")

    @staticmethod
    def _check_condition(name: str, condition: Mapping[str, Any], earlier: List[str], all_names: List[str], problems: List[str]) -> None:
        def operators(dsl):
            for operator, operand in dsl.items():
                yield operator
                if operator in ("all", "any"):
                    for sub in operand:
                        yield from operators(sub)

        unknown = sorted({op for op in operators(condition) if op not in DSL_OPERATORS})
        if unknown:
            problems.append(f"Field '{name}' active condition uses unknown operator(s) {unknown}")
            return

        for reference in dsl_field_references(condition):
            if reference not in all_names:
                problems.append(f"Field '{name}' active condition references undefined field '{reference}'")
            elif reference not in earlier:
                problems.append(f"Field '{name}' active condition references '{reference}', which is not an earlier field")

    @staticmethod
    def _build_template(usage: Any, spec: TemplateDecl, field_names: List[str], problems: List[str], owner: str) -> Optional[Template]:
        try:
            template = spec if isinstance(spec, Template) else make_template(validate_usage(usage), spec)
            for pattern in template.patterns:
                validate_pattern(pattern, field_names, len(USAGE_ARGS.get(template.usage, ())))
        except TemplateError as e:
            problems.append(f"{owner} template '{usage}': {e}")
            return None
        except (TypeError, ValueError) as e:
            problems.append(f"{owner}: {e}")
            return None
        return template


# ========================
# JSON loading
# ========================

FIELD_KEYS = {
    "name", "kind", "values", "description", "terms", "generate_terms",
    "optional", "active", "min", "max", "min_length", "max_length",
    "prompt", "templates",
}


def load_form_schema(path: Union[str, Path], max_phrase: Optional[int] = None) -> FormSchema:
    """
    Load a form schema from a JSON file.

    File format:
        {
          "name": "Sandwich",
          "templates": {"not_understood": ["...", "..."]},
          "fields": [
            {"name": "Length", "kind": "enum", "values": ["SixInch", "FootLong"]},
            {"name": "Rating", "kind": "floating", "min": 1, "max": 5,
             "optional": true, "active": {"exists": "DeliveryAddress"}}
          ]
        }

    Values may be names or {"name", "description", "terms"}; terms may be
    phrases or {"regex": "..."}.

    Args:
        path: Path to the JSON file
        max_phrase: Longest generated n-gram

    Returns:
        FormSchema

    Raises:
        FileNotFoundError: If the file doesn't exist
        SchemaError: If the declaration is invalid
    """
    schema_path = Path(path)
    if not schema_path.exists():
        raise FileNotFoundError(f"Form schema not found: {path}")

    with open(schema_path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise SchemaError(f"Form schema {path} is not valid JSON: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("fields"), list):
        raise SchemaError(f"Form schema {path} must be an object with a 'fields' list")

    builder = FormBuilder(data.get("name", schema_path.stem), max_phrase=max_phrase)
    problems = []
    for index, field in enumerate(data["fields"]):
        if not isinstance(field, dict) or "name" not in field or "kind" not in field:
            problems.append(f"Field at index {index} must be an object with 'name' and 'kind'")
            continue
        unknown = set(field) - FIELD_KEYS
        if unknown:
            problems.append(f"Field '{field['name']}' has unknown keys {sorted(unknown)}")
            continue
        builder.field(
            field["name"],
            field["kind"],
            values=field.get("values", ()),
            description=field.get("description"),
            terms=field.get("terms", ()),
            generate_terms=field.get("generate_terms", True),
            optional=field.get("optional", False),
            active=field.get("active"),
            min_value=field.get("min"),
            max_value=field.get("max"),
            min_length=field.get("min_length"),
            max_length=field.get("max_length"),
            prompt=field.get("prompt"),
            templates=field.get("templates"),
        )
    if problems:
        raise SchemaError.from_problems(problems)

    builder.templates(data.get("templates", {}))
    return builder.build()
