#!/usr/bin/env python3
"""
Vocab Practice - Flask JSON API
Thin HTTP adapter over the vocab_practice core: sessions, answers, progress
and word-bank administration.
"""

import os
import sys
import argparse
import traceback
from typing import Any, Dict, List, Optional

from flask import Flask, request, jsonify

# Add the current directory to the path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from vocab_practice import db, fallback, progress, sessions, words
from vocab_practice.errors import ValidationError, VocabError
from vocab_practice.structured import CreateWordRequest

# Check for debug mode
DEBUG = os.environ.get("DEBUG", "0") == "1"

app = Flask(__name__)
app.secret_key = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')
app.config['MAX_CONTENT_LENGTH'] = 16 * 1024 * 1024  # 16MB max upload
app.config['DEFAULT_QUESTION_COUNT'] = int(os.environ.get('DEFAULT_QUESTION_COUNT', '10'))

# One store per process; sessions created during a database outage live here
session_store = sessions.create_default_store()

STATUS_BY_KIND = {
    'validation': 400,
    'not_found': 404,
    'conflict': 409,
    'infrastructure': 500,
}

BATCH_STATUS = {
    'success': 201,
    'partial': 207,
    'failed': 400,
}


@app.errorhandler(VocabError)
def handle_vocab_error(error: VocabError) -> Any:
    status = STATUS_BY_KIND.get(error.kind, 500)
    if DEBUG and status >= 500:
        traceback.print_exc()
    return jsonify({'status': 'error', 'error': error.to_dict()}), status


@app.before_request
def initialize_app() -> None:
    """Initialize the database if needed."""
    if not hasattr(app, '_database_initialized'):
        try:
            if not db.is_db_initialized():
                db.init_db()
                print("✅ Database initialized on startup")
        except Exception as e:
            # Sessions can still run on the in-memory store
            print(f"❌ Database startup check failed: {str(e)}")
        setattr(app, "_database_initialized", True)


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("request body must be a JSON object")
    return data


def _int_value(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer", field=name)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer", field=name)


def _int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == '':
        return default
    return _int_value(raw, name)


def _success(data: Any, status: int = 200, **extra: Any) -> Any:
    payload = {'status': 'success', 'data': data}
    payload.update(extra)
    return jsonify(payload), status


# ----------------------------------------------------------------------
# Users
# ----------------------------------------------------------------------
@app.route('/api/auth/login', methods=['POST'])
def api_login() -> Any:
    data = _json_body()
    user = progress.login(data.get('display_name'))
    message = 'Logged in (offline mode)' if user.offline else 'Logged in'
    return _success(user.to_dict(), message=message)


@app.route('/api/users/<user_id>/stats')
def api_user_stats(user_id: str) -> Any:
    return _success(progress.get_user_stats(user_id))


@app.route('/api/learning-history')
def api_learning_history() -> Any:
    user_id = request.args.get('user_id', '')
    return _success(progress.list_learning_history(
        user_id,
        limit=_int_arg('limit', 50),
        offset=_int_arg('offset', 0),
    ))


# ----------------------------------------------------------------------
# Practice sessions
# ----------------------------------------------------------------------
@app.route('/api/sessions', methods=['POST'])
def api_create_session() -> Any:
    """Start a practice session for a user."""
    data = _json_body()
    user_id = data.get('user_id')
    if not isinstance(user_id, str) or not user_id:
        raise ValidationError("user_id is required", field="user_id")
    total = data.get('total_questions', app.config['DEFAULT_QUESTION_COUNT'])
    result = session_store.create(user_id, _int_value(total, 'total_questions'))
    return _success(result.to_dict(), 201)


@app.route('/api/sessions/<session_id>')
def api_get_session(session_id: str) -> Any:
    return _success(session_store.get(session_id).to_dict())


@app.route('/api/sessions/<session_id>/answer', methods=['POST'])
def api_submit_answer(session_id: str) -> Any:
    """Grade one answer of a session."""
    data = _json_body()
    word_id = _int_value(data.get('word_id'), 'word_id')
    user_answer = data.get('user_answer')
    if not isinstance(user_answer, str):
        raise ValidationError("user_answer must be a string", field="user_answer")
    result = session_store.submit_answer(session_id, word_id, user_answer)
    return _success(result.to_dict())


@app.route('/api/sessions/<session_id>/stats')
def api_session_stats(session_id: str) -> Any:
    return _success(session_store.get_stats(session_id).to_dict())


# ----------------------------------------------------------------------
# Free-standing word practice
# ----------------------------------------------------------------------
@app.route('/api/words/random')
def api_random_words() -> Any:
    limit = _int_arg('limit', 10)
    return _success([q.to_dict() for q in fallback.get_random_words(limit)])


@app.route('/api/words/<int:word_id>/check', methods=['POST'])
def api_check_answer(word_id: int) -> Any:
    data = _json_body()
    result = fallback.check_answer(word_id, data.get('answer'))
    return _success(result, message='Correct!' if result['is_correct'] else 'Incorrect')


# ----------------------------------------------------------------------
# Word administration
# ----------------------------------------------------------------------
@app.route('/api/admin/words', methods=['GET'])
def api_search_words() -> Any:
    result = words.search_words(
        search=request.args.get('search') or None,
        is_active=request.args.get('is_active', 'true'),
        limit=_int_arg('limit', words.DEFAULT_PAGE_SIZE),
        offset=_int_arg('offset', 0),
    )
    return _success(result.to_dict())


@app.route('/api/admin/words', methods=['POST'])
def api_create_word() -> Any:
    word_request = words.validate_word_request(_json_body())
    return _success(words.create_word(word_request).to_dict(), 201)


@app.route('/api/admin/words/<int:word_id>', methods=['GET'])
def api_get_word(word_id: int) -> Any:
    return _success(words.get_word(word_id).to_dict())


@app.route('/api/admin/words/<int:word_id>', methods=['PUT'])
def api_update_word(word_id: int) -> Any:
    word_request = words.validate_word_update(_json_body())
    return _success(words.update_word(word_id, word_request).to_dict())


@app.route('/api/admin/words/<int:word_id>', methods=['DELETE'])
def api_delete_word(word_id: int) -> Any:
    return _success(words.delete_word(word_id).to_dict())


def _batch_requests_from_json(data: Dict[str, Any]) -> List[CreateWordRequest]:
    items = data.get('words')
    if not isinstance(items, list):
        raise ValidationError("words must be a list", field="words")
    requests: List[CreateWordRequest] = []
    problems: List[str] = []
    for index, item in enumerate(items):
        try:
            word_request = words.validate_word_request(item)
        except ValidationError as e:
            problems.append(f"words.{index}: {e.message}")
            continue
        requests.append(word_request)
    if problems:
        raise ValidationError("batch validation failed", errors=problems)
    return requests


def _uploaded_csv() -> Optional[str]:
    upload = request.files.get('file')
    if upload is not None:
        return upload.read().decode('utf-8-sig')
    if request.mimetype == 'text/csv':
        return request.get_data(as_text=True)
    return None


@app.route('/api/admin/words/batch', methods=['POST'])
def api_batch_create_words() -> Any:
    """Create up to 100 words from JSON ``{"words": [...]}`` or a CSV upload.

    201 when every word was created, 207 when some failed, 400 when all failed.
    """
    csv_content = _uploaded_csv()
    if csv_content is not None:
        result = words.import_words_csv(csv_content)
    else:
        result = words.batch_create_words(_batch_requests_from_json(_json_body()))

    return _success(result.to_dict(), BATCH_STATUS[result.status], result=result.status)


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Vocab Practice API')
    parser.add_argument('--host', default='127.0.0.1', help='Host IP to bind to (default: 127.0.0.1)')
    parser.add_argument('--port', type=int, default=5000, help='Port to bind to (default: 5000)')
    parser.add_argument('--questions', type=int, help='Default number of questions per session')
    parser.add_argument('--debug', action='store_true', help='Enable debug mode')

    args = parser.parse_args()

    if args.debug:
        DEBUG = True

    if args.questions:
        app.config['DEFAULT_QUESTION_COUNT'] = args.questions
    print(f"⚙️  Default session length: {app.config['DEFAULT_QUESTION_COUNT']} questions")

    # Initialize database
    try:
        if not db.is_db_initialized():
            db.init_db()
            print("✅ Database initialized")
    except Exception as e:
        print(f"❌ Database initialization failed: {str(e)}")

    print(f"🚀 Starting server on http://{args.host}:{args.port}")
    app.run(debug=DEBUG, host=args.host, port=args.port)
