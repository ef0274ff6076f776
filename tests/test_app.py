"""
Test Flask API - start, answer and status endpoints

Uses the Flask test client; no server is started.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import random

import pytest

from app import create_app
from formflow.core.dialogue_manager import FormEngine
from formflow.core.form_schema import FormBuilder


@pytest.fixture
def app():
    schema = (
        FormBuilder("Pizza")
        .field("Size", "enum", values=["Small", "Large"])
        .field("When", "datetime", optional=True)
        .build()
    )
    app = create_app(FormEngine(schema, rng=random.Random(0)))
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def start(client, body=None):
    response = client.post('/api/start', json=body or {})
    assert response.status_code == 200
    return response.get_json()


def answer(client, conversation_id, text):
    return client.post('/api/answer', json={'conversation_id': conversation_id, 'answer': text})


# ========== Start ==========

def test_start_returns_first_prompt(client):
    data = start(client)
    assert data['success'] is True
    assert len(data['conversation_id']) == 8
    assert data['message'] == "Please select a size (1. Small, 2. Large)"
    assert data['done'] is False


def test_start_with_initial_values(client):
    data = start(client, {'initial_values': {'Size': 'Large'}})
    assert "(current choice: Large)" in data['message']


def test_start_with_undeclared_initial_value(client):
    response = client.post('/api/start', json={'initial_values': {'Colour': 'Red'}})
    assert response.status_code == 400
    assert response.get_json()['success'] is False


# ========== Answer ==========

def test_full_conversation(client):
    conversation_id = start(client)['conversation_id']

    data = answer(client, conversation_id, "large").get_json()
    assert data['success'] is True
    assert data['done'] is False
    assert data['result'] is None

    data = answer(client, conversation_id, "March 3 2027 6pm").get_json()
    assert data['message'].startswith("Is this your selection?")

    data = answer(client, conversation_id, "yes").get_json()
    assert data['done'] is True
    assert data['result'] == {'Size': 'Large', 'When': '2027-03-03T18:00:00'}


def test_finished_conversation_is_dropped(app, client):
    conversation_id = start(client)['conversation_id']
    assert conversation_id in app.config['CONVERSATIONS']

    data = answer(client, conversation_id, "quit").get_json()
    assert data['done'] is True
    assert app.config['CONVERSATIONS'] == {}

    response = answer(client, conversation_id, "large")
    assert response.status_code == 404


def test_completed_conversation_is_dropped(app, client):
    conversation_id = start(client)['conversation_id']
    for text in ("large", "March 3 2027 6pm", "yes"):
        answer(client, conversation_id, text)
    assert conversation_id not in app.config['CONVERSATIONS']
    assert client.get(f'/api/status/{conversation_id}').status_code == 404


def test_answer_unknown_conversation(client):
    response = answer(client, "nope", "large")
    assert response.status_code == 404


def test_answer_must_be_string(client):
    conversation_id = start(client)['conversation_id']
    response = client.post('/api/answer', json={'conversation_id': conversation_id, 'answer': 2})
    assert response.status_code == 400


# ========== Status ==========

def test_status(client):
    conversation_id = start(client)['conversation_id']
    answer(client, conversation_id, "2")

    response = client.get(f'/api/status/{conversation_id}')
    data = response.get_json()
    assert response.status_code == 200
    assert data['phase'] == "asking_field"
    assert data['field'] == "When"
    assert data['values'] == {'Size': 'Large'}
    assert data['status'].splitlines() == ["* Size: Large", "* When: Unspecified"]
    assert data['done'] is False


def test_status_unknown_conversation(client):
    response = client.get('/api/status/nope')
    assert response.status_code == 404


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
