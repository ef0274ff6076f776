"""
Console Harness for FormEngine (Functional Core)

Simple console loop that drives step() from stdin.

Usage:
    python main.py [path/to/form.json] [--debug]
"""

import json
import logging
import sys

from formflow.core.dialogue_manager import FormEngine
from formflow.core.form_schema import load_form_schema
from formflow.errors import SchemaError
from formflow.utils.helpers import jsonable_values

DEFAULT_SCHEMA = "data/sandwich_form.json"

# Configure logging
logging.basicConfig(
    level=logging.WARNING,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def print_separator(char="=", length=60):
    """Print a separator line"""
    print(char * length)


def print_debug_info(turn_result):
    """Print debug information from TurnResult"""
    print("-" * 60)
    for key, value in turn_result.debug.items():
        print(f"{key}: {value}")
    print("-" * 60)


def main(argv=None):
    """Run console form"""
    args = list(sys.argv[1:] if argv is None else argv)
    show_debug = "--debug" in args
    paths = [arg for arg in args if arg != "--debug"]
    schema_path = paths[0] if paths else DEFAULT_SCHEMA

    if show_debug:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        schema = load_form_schema(schema_path)
        engine = FormEngine(schema)
    except (FileNotFoundError, SchemaError) as e:
        print(f"\nFailed to load form: {e}")
        return 1

    print_separator()
    print(f"FORM: {schema.name}")
    print_separator()
    print("Type 'help' for options, 'quit' to stop\n")

    # State is external - we hold it in this loop
    turn_result = engine.start()
    print(f"{turn_result.output_text}\n")

    while not turn_result.done:
        try:
            user_input = input("> ")
        except (KeyboardInterrupt, EOFError):
            print("\n\nForm interrupted by user")
            return 1

        turn_result = engine.step(turn_result.state, user_input)
        print(f"\n{turn_result.output_text}\n")

        if show_debug:
            print_debug_info(turn_result)

    if turn_result.result is not None:
        print_separator()
        print("RESULT")
        print_separator()
        print(json.dumps(jsonable_values(turn_result.result), indent=2))

    return 0


if __name__ == '__main__':
    sys.exit(main())
