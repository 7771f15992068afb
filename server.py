import os
import sys
import traceback
from flask import Flask, request, jsonify

from lr0_parser import GrammarRow, GrammarWorkflowManager

app = Flask(__name__)

DEFAULT_PORT = 5000

# Pipeline objects kept in workflow results; never serialized
INTERNAL_KEYS = ('grammar', 'automaton', 'table')


# --- HTML Escape Helper ---
def escapeHtml(unsafe):
    if unsafe is None: return ''
    unsafe = str(unsafe)
    return unsafe.replace('&', '&amp;').replace('<', '&lt;').replace('>', '&gt;').replace('"', '&quot;').replace("'", '&#039;')


def workflow_from_request(data):
    """
    Build a workflow manager from a request body.

    The body carries either 'rows' (list of {id, left, right, hasEpsilon})
    or 'cfg' (grammar text). Returns (manager, error_message).
    """
    if not isinstance(data, dict):
        return None, "Request body must be a JSON object"

    rows = data.get('rows')
    cfg_input = data.get('cfg')

    if rows is not None:
        if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
            return None, "'rows' must be a list of objects"
        return GrammarWorkflowManager(rows=[GrammarRow.from_dict(row, i) for i, row in enumerate(rows)]), None
    if cfg_input:
        return GrammarWorkflowManager(cfg_text=cfg_input), None
    return None, "No grammar provided (send 'rows' or 'cfg')"


def public_payload(result):
    return {key: value for key, value in result.items() if key not in INTERNAL_KEYS}


def failure_response(result, stage):
    print(f"--- {stage} FAILED ---", file=sys.stderr)
    print(f"Error: {result.get('error')}", file=sys.stderr)
    for error in result.get('errors', []):
        print(f"  {error.get('message')}", file=sys.stderr)
    return jsonify(public_payload(result)), 400


def unexpected_error(e):
    print(f"--- UNEXPECTED Python Error: {e} ---", file=sys.stderr)
    traceback.print_exc(file=sys.stderr)
    error_message = f"Unexpected server error: {escapeHtml(str(e))}"
    return jsonify({"error": error_message, "error_type": "system_error"}), 500


# --- Flask Endpoints ---

@app.route('/build-grammar', methods=['POST'])
def build_grammar():
    """
    Validate grammar rows (or text) and return the productions and symbol sets.

    Every validation problem is returned at once in 'errors'.
    """
    workflow_manager, error = workflow_from_request(request.get_json(silent=True))
    if error:
        return jsonify({"error": error}), 400

    try:
        print("--- Building Grammar ---", file=sys.stderr)
        result = workflow_manager.build_grammar()
        if not result['success']:
            return failure_response(result, "Grammar Building")

        print("--- Grammar Building SUCCEEDED ---", file=sys.stderr)
        print(f"Found {len(result['productions'])} productions", file=sys.stderr)
        return jsonify(public_payload(result))

    except Exception as e:
        return unexpected_error(e)


@app.route('/build-automaton', methods=['POST'])
def build_automaton():
    """Build the canonical LR(0) collection: states, transitions and DOT source."""
    workflow_manager, error = workflow_from_request(request.get_json(silent=True))
    if error:
        return jsonify({"error": error}), 400

    try:
        print("--- Building LR(0) Automaton ---", file=sys.stderr)
        result = workflow_manager.build_automaton()
        if not result['success']:
            return failure_response(result, "Automaton Building")

        print("--- Automaton Building SUCCEEDED ---", file=sys.stderr)
        print(f"States created: {len(result['states'])}", file=sys.stderr)
        print(f"Transitions: {len(result['transitions'])}", file=sys.stderr)
        return jsonify(public_payload(result))

    except Exception as e:
        return unexpected_error(e)


@app.route('/build-parse-table', methods=['POST'])
def build_parse_table():
    """
    Build the LR(0) ACTION/GOTO table.

    Conflicts are not an error: they come back in 'conflicts' with
    'is_lr0' set to false.
    """
    workflow_manager, error = workflow_from_request(request.get_json(silent=True))
    if error:
        return jsonify({"error": error}), 400

    try:
        print("--- Building Parse Table ---", file=sys.stderr)
        result = workflow_manager.build_parse_table()
        if not result['success']:
            return failure_response(result, "Parse Table Building")

        print("--- Parse Table Building SUCCEEDED ---", file=sys.stderr)
        print(f"States created: {result['table_info']['states_count']}", file=sys.stderr)
        print(f"Action entries: {result['table_info']['action_entries']}", file=sys.stderr)
        print(f"Goto entries: {result['table_info']['goto_entries']}", file=sys.stderr)
        if result['conflicts']:
            print(f"Conflicts detected: {len(result['conflicts'])}", file=sys.stderr)

        return jsonify(public_payload(result))

    except Exception as e:
        return unexpected_error(e)


@app.route('/simulate-parse', methods=['POST'])
def simulate_parse():
    """
    Run the shift-reduce simulation on an input string.

    Returns the step trace in every case; the parse tree only when the
    input is accepted. Grammars with conflicts are refused with
    error_type 'grammar_not_lr0'.
    """
    data = request.get_json(silent=True)
    workflow_manager, error = workflow_from_request(data)
    if error:
        return jsonify({"error": error}), 400

    string_input = data.get('input')
    if string_input is None:
        return jsonify({"error": "No input string provided"}), 400

    try:
        print(f"--- Parsing Input String: '{string_input}' ---", file=sys.stderr)
        result = workflow_manager.parse_input_string(str(string_input))

        if 'status' not in result:
            return failure_response(result, "Grammar Processing")

        if result['success']:
            print("--- Parsing SUCCEEDED ---", file=sys.stderr)
            print(f"Steps: {result['trace_steps']}", file=sys.stderr)
            return jsonify(public_payload(result))

        print(f"--- Parsing {result['status'].upper()} ---", file=sys.stderr)
        print(f"Error: {result['error']}", file=sys.stderr)
        return jsonify(public_payload(result)), 400

    except Exception as e:
        return unexpected_error(e)


# --- Main Execution ---
if __name__ == '__main__':
    port = int(os.environ.get('LR0_SERVER_PORT', DEFAULT_PORT))

    print("--- LR(0) Parser Visualizer Server ---")
    print(f"Running on http://127.0.0.1:{port}")
    print("-" * 34)
    app.run(debug=True, port=port, use_reloader=False)
