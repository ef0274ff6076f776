"""
Flask Web Application for the form dialog

JSON API around FormEngine. Each conversation's FormState lives in an
in-memory dict keyed by conversation id; persistence beyond the process
is the deployment's business.

Endpoints:
    POST /api/start                 {"initial_values": {...}}  (optional body)
    POST /api/answer                {"conversation_id": "...", "answer": "..."}
    GET  /api/status/<conversation_id>
"""

import logging
from pathlib import Path

from flask import Flask, jsonify, request

from formflow.commands import StartForm, UserTurn
from formflow.core.dialogue_manager import FormEngine
from formflow.core.form_schema import load_form_schema
from formflow.results import IllegalCommand
from formflow.utils.helpers import generate_conversation_id, jsonable_values

DEFAULT_SCHEMA = Path(__file__).parent / "data" / "sandwich_form.json"

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_app(engine=None):
    """
    Create the Flask app

    Args:
        engine: FormEngine to serve (default: the sandwich form)

    Returns:
        Flask app; app.config['CONVERSATIONS'] holds the live states
    """
    if engine is None:
        engine = FormEngine(load_form_schema(DEFAULT_SCHEMA))

    app = Flask(__name__)
    app.config['ENGINE'] = engine
    app.config['CONVERSATIONS'] = {}
    conversations = app.config['CONVERSATIONS']

    @app.route('/api/start', methods=['POST'])
    def start_conversation():
        """Start new conversation and return the first prompt"""
        data = request.get_json(silent=True) or {}
        try:
            turn = engine.handle(StartForm(initial_values=data.get('initial_values') or {}))
        except ValueError as e:
            return jsonify({'success': False, 'error': str(e)}), 400

        conversation_id = generate_conversation_id(short=True)
        conversations[conversation_id] = turn.state
        logger.info(f"Conversation {conversation_id} started")

        return jsonify({
            'success': True,
            'conversation_id': conversation_id,
            'message': turn.output_text,
            'done': turn.done
        })

    @app.route('/api/answer', methods=['POST'])
    def submit_answer():
        """Submit user text and get the next prompt"""
        data = request.get_json(silent=True) or {}
        conversation_id = data.get('conversation_id')
        answer = data.get('answer', '')

        if not isinstance(answer, str):
            return jsonify({'success': False, 'error': "'answer' must be a string"}), 400

        state = conversations.get(conversation_id)
        if state is None:
            return jsonify({'success': False, 'error': 'Unknown conversation'}), 404

        try:
            outcome = engine.handle(UserTurn(user_input=answer, state=state))
        except Exception as e:
            # Fatal for this conversation only
            logger.error(f"Conversation {conversation_id} failed: {e}")
            conversations.pop(conversation_id, None)
            return jsonify({'success': False, 'error': str(e)}), 500

        if isinstance(outcome, IllegalCommand):
            return jsonify({'success': False, 'error': outcome.reason}), 409

        if outcome.done:
            conversations.pop(conversation_id, None)
            logger.info(f"Conversation {conversation_id} finished")
        else:
            conversations[conversation_id] = outcome.state
        return jsonify({
            'success': True,
            'message': outcome.output_text,
            'done': outcome.done,
            'result': jsonable_values(outcome.result)
        })

    @app.route('/api/status/<conversation_id>')
    def conversation_status(conversation_id):
        """Current phase, field and values of a conversation"""
        state = conversations.get(conversation_id)
        if state is None:
            return jsonify({'success': False, 'error': 'Unknown conversation'}), 404

        return jsonify({
            'success': True,
            'phase': state.phase.value,
            'field': state.current_field,
            'status': engine.render_status(state),
            'values': jsonable_values(engine.selector.visible_values(state.values)),
            'done': state.is_terminal
        })

    return app


if __name__ == '__main__':
    app = create_app()

    print("\n" + "=" * 60)
    print("FORM DIALOG - WEB API")
    print("=" * 60)
    print("\nServer starting on http://localhost:5000")
    print("\nPress Ctrl+C to stop the server")
    print("=" * 60 + "\n")

    app.run(debug=True, host='0.0.0.0', port=5000)
