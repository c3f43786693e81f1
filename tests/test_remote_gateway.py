import asyncio
import json

import httpx
import pytest

from quiz_client.core.models import StudentIdentity
from quiz_client.core.remote_gateway import ApiError, QuizApiClient

BASE_URL = "http://quiz.test/api"


def _client(handler, **kwargs):
    return QuizApiClient(BASE_URL, transport=httpx.MockTransport(handler), **kwargs)


def _call(handler, method_name, *args, **kwargs):
    async def scenario():
        async with _client(handler) as client:
            return await getattr(client, method_name)(*args, **kwargs)

    return asyncio.run(scenario())


def test_single_record_envelope_is_unwrapped():
    def handler(request):
        assert request.url.path == "/api/quizzes/5"
        return httpx.Response(
            200,
            json={"data": {"id": 5, "title": "Fractions", "timeLimit": 15}, "message": "OK", "status": 200},
        )

    quiz = _call(handler, "get_quiz", 5)

    assert (quiz.id, quiz.title, quiz.duration_minutes) == (5, "Fractions", 15)


def test_bare_list_response_is_accepted():
    def handler(request):
        return httpx.Response(200, json=[{"id": 1, "content": "2 + 2?", "options": []}])

    questions = _call(handler, "get_questions", 1)

    assert [question.content for question in questions] == ["2 + 2?"]


def test_list_quizzes_sends_only_given_query_parameters():
    seen = {}

    def handler(request):
        seen.update(request.url.params)
        return httpx.Response(200, json={"data": [], "meta": {"total": 0, "page": 2, "limit": 5}})

    assert _call(handler, "list_quizzes", page=2, limit=5) == []
    assert seen == {"page": "2", "limit": "5"}


def test_paginated_attempts_keep_their_meta():
    def handler(request):
        assert request.url.path == "/api/quiz_attempts_by_quiz_id/3"
        assert request.url.params["keyword"] == "an"
        return httpx.Response(
            200,
            json={
                "data": [{"id": 9, "quizId": 3, "student": {"id": 4, "fullName": "An Nguyen"}, "score": 7}],
                "meta": {"total": 11, "page": 1, "limit": 10, "totalPages": 2},
            },
        )

    page = _call(handler, "list_attempts_by_quiz", 3, keyword="an")

    assert [attempt.display_name for attempt in page.items] == ["An Nguyen"]
    assert (page.meta.total, page.meta.total_pages) == (11, 2)


def test_start_attempt_posts_camel_case_body():
    bodies = []

    def handler(request):
        assert request.method == "POST"
        assert request.url.path == "/api/quiz_attempts"
        bodies.append(json.loads(request.content))
        return httpx.Response(201, json={"data": {"id": 12, "quizId": 1, "student_name": "An"}})

    attempt = _call(handler, "start_attempt", 1, StudentIdentity(name="An", date_of_birth="2010-04-02"))

    assert attempt.id == 12
    assert bodies == [{"quizId": 1, "studentName": "An", "dateOfBirth": "2010-04-02"}]


def test_submit_answer_posts_selected_option():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(201, json={"data": {"id": 1, "attemptId": 12, "questionId": 3, "selectedOptionId": 30}})

    answer = _call(handler, "submit_answer", 12, 3, 30)

    assert answer.selected_option_id == 30
    assert bodies == [{"attemptId": 12, "questionId": 3, "selectedOptionId": 30}]


def test_access_token_is_sent_as_bearer_header():
    headers = {}

    def handler(request):
        headers.update(request.headers)
        return httpx.Response(200, json={"data": []})

    async def scenario():
        async with _client(handler, access_token="secret") as client:
            await client.list_quizzes()

    asyncio.run(scenario())

    assert headers["authorization"] == "Bearer secret"
    assert headers["content-type"] == "application/json"


@pytest.mark.parametrize(
    ("response", "expected_message"),
    [
        (httpx.Response(404, json={"message": "Quiz not found", "statusCode": 404}), "Quiz not found"),
        (httpx.Response(422, json={"detail": "Invalid body"}), "Invalid body"),
        (httpx.Response(502, text="Bad gateway"), "Bad gateway"),
        (httpx.Response(500), "Unexpected API error"),
    ],
)
def test_error_responses_raise_api_error(response, expected_message):
    with pytest.raises(ApiError) as excinfo:
        _call(lambda request: response, "get_quiz", 1)

    assert excinfo.value.status == response.status_code
    assert excinfo.value.message == expected_message


def test_error_payload_is_kept():
    body = {"message": "Quiz not found", "statusCode": 404}

    with pytest.raises(ApiError) as excinfo:
        _call(lambda request: httpx.Response(404, json=body), "get_quiz", 1)

    assert excinfo.value.payload == body


def test_transport_failure_has_no_status():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ApiError) as excinfo:
        _call(handler, "get_attempt", 1)

    assert excinfo.value.status is None
