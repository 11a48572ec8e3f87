"""
Tests for the Vocab Practice JSON API.
Requests go through the Flask test client; the database is a transient SQLite file.
"""

import io
import os
import tempfile
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from typing import Any, Dict, Generator

import app as app_module
from vocab_practice import db, sessions, words
from vocab_practice.errors import StoreUnavailable

CSV_HEADER = "japanese_meaning,primary_answer,alternative_answers,synonyms\n"


@pytest.fixture(scope="function")
def temp_db() -> Generator[None, None, None]:
    """Setup transient SQLite DB for testing."""
    fd, path = tempfile.mkstemp()
    os.close(fd)
    db.engine = create_engine(f"sqlite:///{path}")
    db.SessionLocal = sessionmaker(bind=db.engine, expire_on_commit=False)
    db.Base.metadata.create_all(bind=db.engine)
    yield
    db.engine.dispose()
    os.unlink(path)


@pytest.fixture
def client(temp_db: None, monkeypatch: Any) -> Any:
    monkeypatch.setattr(app_module, "session_store", sessions.create_default_store())
    app_module.app.config['TESTING'] = True
    with app_module.app.test_client() as test_client:
        yield test_client


def _login(client: Any, name: str = "Hanako") -> str:
    response = client.post('/api/auth/login', json={'display_name': name})
    assert response.status_code == 200
    return response.get_json()['data']['id']


def _add_word(client: Any, meaning: str, *answers: str) -> Dict[str, Any]:
    response = client.post('/api/admin/words', json={'japanese_meaning': meaning, 'answers': list(answers)})
    assert response.status_code == 201
    return response.get_json()['data']


# ----------------------------------------------------------------------
# Users
# ----------------------------------------------------------------------
def test_login(client: Any) -> None:
    response = client.post('/api/auth/login', json={'display_name': 'Hanako'})
    body = response.get_json()
    assert response.status_code == 200
    assert body['status'] == 'success'
    assert body['data']['display_name'] == 'Hanako'
    assert body['data']['offline'] is False
    assert _login(client) == body['data']['id']


def test_login_validation_error(client: Any) -> None:
    response = client.post('/api/auth/login', json={'display_name': ''})
    body = response.get_json()
    assert response.status_code == 400
    assert body['status'] == 'error'
    assert body['error']['code'] == 'VALIDATION_ERROR'
    assert body['error']['details']['field'] == 'display_name'


def test_non_json_body_is_rejected(client: Any) -> None:
    response = client.post('/api/auth/login', data='hello', content_type='text/plain')
    assert response.status_code == 400


def test_user_stats_and_history(client: Any) -> None:
    user_id = _login(client)
    db.seed_words()
    created = client.post('/api/sessions', json={'user_id': user_id, 'total_questions': 2}).get_json()['data']
    question = created['questions'][0]
    client.post(f"/api/sessions/{created['session_id']}/answer",
                json={'word_id': question['id'], 'user_answer': question['answers'][0]})

    stats = client.get(f'/api/users/{user_id}/stats').get_json()['data']
    assert stats['overview']['total_answers'] == 1
    assert stats['overview']['total_sessions'] == 1

    history = client.get(f'/api/learning-history?user_id={user_id}').get_json()['data']
    assert history['total_count'] == 1
    assert history['history'][0]['word_id'] == question['id']

    assert client.get('/api/users/ghost/stats').status_code == 404
    assert client.get(f'/api/learning-history?user_id={user_id}&limit=abc').status_code == 400


# ----------------------------------------------------------------------
# Practice sessions
# ----------------------------------------------------------------------
def test_session_flow(client: Any) -> None:
    user_id = _login(client)
    db.seed_words()

    response = client.post('/api/sessions', json={'user_id': user_id, 'total_questions': 2})
    assert response.status_code == 201
    created = response.get_json()['data']
    assert created['backend'] == 'database'
    assert len(created['questions']) == 2
    session_id = created['session_id']
    q1, q2 = created['questions']

    response = client.post(f'/api/sessions/{session_id}/answer',
                           json={'word_id': q1['id'], 'user_answer': q1['answers'][0].upper()})
    assert response.status_code == 200
    result = response.get_json()['data']
    assert result['is_correct'] is True
    assert result['completed_questions'] == 1

    response = client.post(f'/api/sessions/{session_id}/answer',
                           json={'word_id': q1['id'], 'user_answer': 'again'})
    assert response.status_code == 409
    assert response.get_json()['error']['code'] == 'DUPLICATE_ANSWER'

    response = client.post(f'/api/sessions/{session_id}/answer', json={'word_id': 99999, 'user_answer': 'x'})
    assert response.status_code == 400
    assert response.get_json()['error']['code'] == 'QUESTION_NOT_IN_SESSION'

    result = client.post(f'/api/sessions/{session_id}/answer',
                         json={'word_id': q2['id'], 'user_answer': 'wrong'}).get_json()['data']
    assert result['is_completed'] is True

    stats = client.get(f'/api/sessions/{session_id}/stats').get_json()['data']
    assert stats['correct_answers'] == 1
    assert stats['incorrect_answers'] == 1
    assert stats['accuracy'] == 0.5

    detail = client.get(f'/api/sessions/{session_id}').get_json()['data']
    assert detail['is_completed'] is True
    assert [q['id'] for q in detail['questions']] == [q1['id'], q2['id']]

    response = client.post(f'/api/sessions/{session_id}/answer',
                           json={'word_id': q2['id'], 'user_answer': 'late'})
    assert response.status_code == 409
    assert response.get_json()['error']['code'] == 'SESSION_ALREADY_COMPLETED'


def test_session_error_statuses(client: Any) -> None:
    user_id = _login(client)
    _add_word(client, '走る', 'run')

    response = client.post('/api/sessions', json={'user_id': user_id, 'total_questions': 5})
    assert response.status_code == 409
    body = response.get_json()
    assert body['error']['code'] == 'INSUFFICIENT_WORD_POOL'
    assert body['error']['details'] == {'required': 5, 'available': 1}

    assert client.post('/api/sessions', json={'user_id': user_id, 'total_questions': 0}).status_code == 400
    assert client.post('/api/sessions', json={'user_id': user_id, 'total_questions': 'ten'}).status_code == 400
    assert client.post('/api/sessions', json={'total_questions': 1}).status_code == 400
    assert client.post('/api/sessions', json={'user_id': 'ghost', 'total_questions': 1}).status_code == 404
    assert client.get('/api/sessions/no-such-session').status_code == 404
    assert client.get('/api/sessions/no-such-session/stats').status_code == 404


def test_default_question_count(client: Any, monkeypatch: Any) -> None:
    user_id = _login(client)
    db.seed_words()
    monkeypatch.setitem(app_module.app.config, 'DEFAULT_QUESTION_COUNT', 3)
    created = client.post('/api/sessions', json={'user_id': user_id}).get_json()['data']
    assert created['total_questions'] == 3


# ----------------------------------------------------------------------
# Free-standing word practice
# ----------------------------------------------------------------------
def test_random_words_and_check(client: Any) -> None:
    word = _add_word(client, '走る', 'run', 'jog')

    items = client.get('/api/words/random?limit=5').get_json()['data']
    assert [item['id'] for item in items] == [word['id']]

    response = client.post(f"/api/words/{word['id']}/check", json={'answer': ' Jog '})
    body = response.get_json()
    assert response.status_code == 200
    assert body['data'] == {'is_correct': True, 'user_answer': 'Jog'}

    assert client.post(f"/api/words/{word['id']}/check", json={'answer': ''}).status_code == 400
    assert client.post('/api/words/99999/check', json={'answer': 'run'}).status_code == 404


# ----------------------------------------------------------------------
# Word administration
# ----------------------------------------------------------------------
def test_word_crud(client: Any) -> None:
    word = _add_word(client, '走る', 'run', 'jog')
    assert [a['answer'] for a in word['answers']] == ['run', 'jog']
    assert word['answers'][0]['is_primary'] is True

    response = client.post('/api/admin/words', json={'japanese_meaning': '走る', 'answers': ['sprint']})
    assert response.status_code == 409
    assert response.get_json()['error']['code'] == 'DUPLICATE_WORD'

    assert client.post('/api/admin/words', json={'japanese_meaning': '歩く'}).status_code == 400

    response = client.put(f"/api/admin/words/{word['id']}", json={'answers': ['sprint']})
    assert response.status_code == 200
    assert [a['answer'] for a in response.get_json()['data']['answers']] == ['sprint']

    fetched = client.get(f"/api/admin/words/{word['id']}").get_json()['data']
    assert fetched['japanese_meaning'] == '走る'

    response = client.delete(f"/api/admin/words/{word['id']}")
    assert response.status_code == 200
    assert response.get_json()['data']['is_active'] is False

    assert client.delete(f"/api/admin/words/{word['id']}").status_code == 409
    assert client.put(f"/api/admin/words/{word['id']}", json={'japanese_meaning': 'x'}).status_code == 409
    assert client.get('/api/admin/words/99999').status_code == 404


def test_word_search(client: Any) -> None:
    _add_word(client, '食べ物', 'food')
    _add_word(client, '飲み物', 'drink')

    data = client.get('/api/admin/words', query_string={'search': '食べ'}).get_json()['data']
    assert [w['japanese_meaning'] for w in data['words']] == ['食べ物']
    assert data['pagination']['total'] == 1

    assert client.get('/api/admin/words?limit=500').status_code == 400
    assert client.get('/api/admin/words?is_active=maybe').status_code == 400


def test_batch_json_statuses(client: Any) -> None:
    payload = {'words': [
        {'japanese_meaning': '走る', 'answers': ['run']},
        {'japanese_meaning': '歩く', 'answers': ['walk']},
    ]}
    response = client.post('/api/admin/words/batch', json=payload)
    assert response.status_code == 201
    body = response.get_json()
    assert body['result'] == 'success'
    assert body['data']['created'] == 2

    payload['words'].append({'japanese_meaning': '泳ぐ', 'answers': ['swim']})
    response = client.post('/api/admin/words/batch', json=payload)
    assert response.status_code == 207
    body = response.get_json()
    assert body['data'] == {
        'created': 1,
        'failed': 2,
        'errors': [
            {'index': 0, 'japanese_meaning': '走る', 'error': words.DUPLICATE_MEANING_MESSAGE},
            {'index': 1, 'japanese_meaning': '歩く', 'error': words.DUPLICATE_MEANING_MESSAGE},
        ],
    }

    response = client.post('/api/admin/words/batch', json=payload)
    assert response.status_code == 400
    assert response.get_json()['result'] == 'failed'


def test_batch_json_validation(client: Any) -> None:
    response = client.post('/api/admin/words/batch', json={'words': [
        {'japanese_meaning': '走る', 'answers': ['run']},
        {'japanese_meaning': '', 'answers': ['walk']},
    ]})
    assert response.status_code == 400
    errors = response.get_json()['error']['details']['errors']
    assert len(errors) == 1
    assert errors[0].startswith('words.1:')
    assert words.search_words(is_active='all').pagination.total == 0

    assert client.post('/api/admin/words/batch', json={'words': []}).status_code == 400
    assert client.post('/api/admin/words/batch', json={}).status_code == 400


def test_batch_csv_upload(client: Any) -> None:
    content = CSV_HEADER + '走る,run,"jog,sprint",駆ける\n猫,cat,,\n'
    response = client.post(
        '/api/admin/words/batch',
        data={'file': (io.BytesIO(content.encode('utf-8-sig')), 'words.csv')},
        content_type='multipart/form-data',
    )
    assert response.status_code == 201
    assert response.get_json()['data']['created'] == 2


def test_batch_csv_body_errors(client: Any) -> None:
    response = client.post('/api/admin/words/batch', data=CSV_HEADER + ',run,,\n本,,,\n',
                           content_type='text/csv')
    assert response.status_code == 400
    body = response.get_json()
    assert body['error']['code'] == 'VALIDATION_ERROR'
    assert len(body['error']['details']['errors']) == 2


# ----------------------------------------------------------------------
# Infrastructure failures
# ----------------------------------------------------------------------
def test_store_failure_maps_to_500(client: Any, monkeypatch: Any) -> None:
    def unavailable(**kwargs: Any) -> None:
        raise StoreUnavailable("search words", "connection refused")

    monkeypatch.setattr(words, "search_words", unavailable)
    response = client.get('/api/admin/words')
    assert response.status_code == 500
    assert response.get_json()['error']['code'] == 'DATABASE_ERROR'


def test_sessions_fall_back_when_database_is_down(client: Any, monkeypatch: Any) -> None:
    broken = create_engine("sqlite:////nonexistent/dir/vocab.db")
    monkeypatch.setattr(db, "SessionLocal", sessionmaker(bind=broken, expire_on_commit=False))

    user_id = _login(client)
    assert user_id.startswith('local-')

    response = client.post('/api/sessions', json={'user_id': user_id, 'total_questions': 3})
    assert response.status_code == 201
    created = response.get_json()['data']
    assert created['backend'] == 'memory'

    question = created['questions'][0]
    result = client.post(f"/api/sessions/{created['session_id']}/answer",
                         json={'word_id': question['id'], 'user_answer': question['answers'][0]}).get_json()['data']
    assert result['is_correct'] is True
    assert result['backend'] == 'memory'

    items = client.get('/api/words/random?limit=4').get_json()['data']
    assert len(items) == 4
