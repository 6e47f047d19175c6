#!/usr/bin/env python3
"""Local development server for the Drew function.

Run this instead of the Firebase emulator when iterating on the agent.

Usage:
    cd functions
    source venv/bin/activate
    python serve_local.py

This will start a Flask server that handles:
- POST /quotecat-dev/us-central1/drew_agent -> drew_agent function
- GET /health
"""

import os

# Set environment for local development
os.environ.setdefault('FUNCTIONS_EMULATOR', 'true')
os.environ.setdefault('GCLOUD_PROJECT', 'quotecat-dev')
os.environ.setdefault('FIRESTORE_EMULATOR_HOST', '127.0.0.1:8081')

from flask import Flask, request, jsonify
from flask_cors import CORS

# Import the main module after setting env vars
from main import drew_agent

app = Flask(__name__)
CORS(app)


class MockRequest:
    """Mock Firebase request object to wrap Flask request."""

    def __init__(self, flask_request):
        self._request = flask_request
        self._json_data = None
        self.method = flask_request.method
        self.headers = dict(flask_request.headers)

    def get_json(self, force=False):
        if self._json_data is None:
            self._json_data = self._request.get_json(force=force) or {}
        return self._json_data


def wrap_firebase_function(firebase_fn):
    """Wrap a Firebase function to work with Flask."""
    def wrapper():
        mock_req = MockRequest(request)
        response = firebase_fn(mock_req)
        return response.get_data(), response.status_code, dict(response.headers)
    return wrapper


@app.route('/quotecat-dev/us-central1/drew_agent', methods=['POST', 'OPTIONS'])
def handle_drew_agent():
    return wrap_firebase_function(drew_agent)()


# Health check
@app.route('/health', methods=['GET'])
def health():
    return jsonify({'status': 'ok', 'service': 'drew-agent'})


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5002))
    print(f"""
╔════════════════════════════════════════════════════════════════╗
║  Drew Agent - Local Development Server                         ║
╠════════════════════════════════════════════════════════════════╣
║                                                                ║
║  Server running on: http://127.0.0.1:{port}                     ║
║                                                                ║
║  Endpoints:                                                    ║
║  • POST /quotecat-dev/us-central1/drew_agent                   ║
║  • GET  /health                                                ║
║                                                                ║
╚════════════════════════════════════════════════════════════════╝
""")
    app.run(host='127.0.0.1', port=port, debug=True, threaded=True)
