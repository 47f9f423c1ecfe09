import pytest
from unittest.mock import AsyncMock
from lib.error_handler import RemoteServiceError
from conftest import make_turn_result

def test_ping(test_client):
    response = test_client.get('/ping', headers={'User-Agent': 'pytest'})

    assert response.status_code == 200
    body = response.get_json()
    assert body['status'] == 'success'
    assert body['method'] == 'GET'
    assert body['userAgent'] == 'pytest'
    assert body['timestamp']

def test_health(test_client):
    response = test_client.get('/health')

    assert response.status_code == 200
    body = response.get_json()
    assert body['success'] is True
    assert body['projectId'] == 'test-project'
    assert body['location'] == 'asia-south1'
    assert body['timestamp']

def test_chat_generates_session_id(test_client, mock_agent):
    """POST /chat with only a message returns ordered messages and a new session id"""
    mock_agent.send_message = AsyncMock(return_value=make_turn_result("Hi!", "How can I help?"))

    response = test_client.post('/chat', json={'message': 'Hello'})

    assert response.status_code == 200
    body = response.get_json()
    assert body['success'] is True
    assert body['data']['messages'] == ["Hi!", "How can I help?"]
    assert isinstance(body['sessionId'], str) and body['sessionId']
    assert body['sessionId'].startswith('session_')

    args = mock_agent.send_message.call_args.args
    assert args[0] == 'Hello'
    assert args[1] == body['sessionId']

def test_chat_keeps_supplied_session_id(test_client, mock_agent):
    response = test_client.post('/chat', json={
        'message': 'Hello',
        'sessionId': 'user123_session',
        'languageCode': 'hi'
    })

    assert response.status_code == 200
    assert response.get_json()['sessionId'] == 'user123_session'
    mock_agent.send_message.assert_awaited_once_with('Hello', 'user123_session', 'hi')

def test_chat_serializes_turn_result_in_camel_case(test_client, mock_agent):
    response = test_client.post('/chat', json={'message': 'Hello'})

    data = response.get_json()['data']
    assert data['sessionId'] == 'response-1'
    assert data['languageCode'] == 'en'
    assert data['intent'] is None
    assert data['currentPage'] is None
    assert data['parameters'] == {}
    assert data['raw'] == {'queryText': None, 'confidence': None}

@pytest.mark.parametrize('payload', [{}, {'message': ''}, {'sessionId': 'abc'}])
def test_chat_requires_message(test_client, mock_agent, payload):
    response = test_client.post('/chat', json=payload)

    assert response.status_code == 400
    body = response.get_json()
    assert body['success'] is False
    assert body['error'] == 'Message is required'
    mock_agent.send_message.assert_not_called()

def test_chat_reports_agent_failure(test_client, mock_agent):
    mock_agent.send_message = AsyncMock(
        side_effect=RemoteServiceError("Failed to send message to Dialogflow CX: unavailable")
    )

    response = test_client.post('/chat', json={'message': 'Hello'})

    assert response.status_code == 500
    body = response.get_json()
    assert body['success'] is False
    assert 'unavailable' in body['error']
    assert body['details'] == 'Failed to process message with Dialogflow CX'

@pytest.mark.parametrize('payload,field', [
    ({'message': 123}, 'message'),
    ({'message': ['Hello']}, 'message'),
    ({'message': 'Hello', 'sessionId': 42}, 'sessionId'),
    ({'message': 'Hello', 'languageCode': {'code': 'en'}}, 'languageCode'),
])
def test_chat_rejects_non_string_fields(test_client, mock_agent, payload, field):
    response = test_client.post('/chat', json=payload)

    assert response.status_code == 400
    assert response.get_json() == {'success': False, 'error': f"{field} must be a string"}
    mock_agent.send_message.assert_not_called()

def test_unexpected_error_returns_json_envelope(test_client, mock_agent):
    mock_agent.send_message = AsyncMock(side_effect=TypeError("unexpected payload"))

    response = test_client.post('/chat', json={'message': 'Hello'})

    assert response.status_code == 500
    assert response.is_json
    assert response.get_json() == {'success': False, 'error': 'unexpected payload'}

def test_unknown_route_returns_json_envelope(test_client):
    response = test_client.get('/does-not-exist')

    assert response.status_code == 404
    assert response.is_json
    assert response.get_json()['success'] is False

def test_chat_rejects_non_object_body(test_client, mock_agent):
    response = test_client.post('/chat', json=['Hello'])

    assert response.status_code == 400
    assert response.get_json()['error'] == 'Message is required'
    mock_agent.send_message.assert_not_called()
