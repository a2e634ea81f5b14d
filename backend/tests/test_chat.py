"""Tests for the assistant chat: sessions, the socket protocol and the tool loop."""
import httpx
import openai
import pytest
from fastapi import status
from starlette.websockets import WebSocketDisconnect

from courseware.auth.service import AuthService
from courseware.chat import events
from courseware.chat.service import (
    ACCESS_DENIED_ERROR, BUSY_ERROR, GENERIC_ERROR, NO_OUTPUT_ERROR, TOOL_CAP_NOTICE,
    build_system_prompt, describe_model_error, resolve_timezone,
)
from courseware.models import Assignment, ChatMemory, ChatSession

from conftest import text_reply, tool_reply


PARAGRAPH = {"type": "paragraph", "content": [{"type": "text", "text": "Read chapter 2 first."}]}


@pytest.fixture
def chat_session(client, assignment, instructor_headers):
    response = client.post(
        "/ai/chat/sessions",
        json={"assignment_id": assignment.id, "title": "Build quiz"},
        headers=instructor_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


@pytest.fixture
def instructor_token(db_session, instructor):
    return AuthService(db_session).create_token_for_user(instructor)


def run_turn(client, token, session_id, assignment_id, message="Hi", **extra):
    """Send one message over the socket and collect frames until the turn ends."""
    frames = []
    with client.websocket_connect(f"/ai/chat/ws?token={token}") as ws:
        ws.send_json({
            "event": events.SEND_MESSAGE,
            "data": {"sessionId": session_id, "assignmentId": assignment_id, "message": message, **extra},
        })
        while True:
            frame = ws.receive_json()
            frames.append(frame)
            if frame["event"] in (events.CHAT_COMPLETE, events.CHAT_ERROR):
                break
    return frames


def event_names(frames):
    return [frame["event"] for frame in frames]


class TestSessions:

    def test_create_list_get_delete(self, client, assignment, chat_session, instructor_headers):
        assert chat_session["title"] == "Build quiz"
        assert chat_session["messages"] == []

        response = client.get(f"/ai/chat/sessions?assignmentId={assignment.id}", headers=instructor_headers)
        assert [s["id"] for s in response.json()] == [chat_session["id"]]

        response = client.get(f"/ai/chat/sessions/{chat_session['id']}", headers=instructor_headers)
        assert response.status_code == status.HTTP_200_OK

        response = client.delete(f"/ai/chat/sessions/{chat_session['id']}", headers=instructor_headers)
        assert response.status_code == status.HTTP_204_NO_CONTENT

        response = client.get(f"/ai/chat/sessions/{chat_session['id']}", headers=instructor_headers)
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"]["message"] == "Session not found"

    def test_students_cannot_chat(self, client, assignment, student_headers):
        response = client.post("/ai/chat/sessions", json={"assignment_id": assignment.id}, headers=student_headers)
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_sessions_are_private(self, client, chat_session, outsider, auth_headers):
        response = client.get(f"/ai/chat/sessions/{chat_session['id']}", headers=auth_headers(outsider))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error"]["message"] == "You can only access your own sessions"


class TestSocket:

    def test_rejects_bad_token(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ai/chat/ws?token=garbage") as ws:
                ws.receive_json()
        assert exc_info.value.code == status.WS_1008_POLICY_VIOLATION

    def test_text_turn_is_persisted(self, client, db_session, assignment, chat_session, instructor_token, fake_model):
        fake_model.script(text_reply("Hello! What should we build?"))

        frames = run_turn(client, instructor_token, chat_session["id"], assignment.id, "Help me")

        assert event_names(frames) == [events.CHAT_TEXT, events.CHAT_COMPLETE]
        assert frames[0]["data"] == {"text": "Hello! What should we build?", "sessionId": chat_session["id"]}

        session = db_session.get(ChatSession, chat_session["id"])
        assert session.messages == [
            {"role": "user", "content": "Help me"},
            {"role": "assistant", "content": [{"type": "text", "text": "Hello! What should we build?"}]},
        ]
        assert 'Assignment: "Quiz 1"' in fake_model.calls[0]["system"]
        assert "save_memory" in fake_model.calls[0]["tools"]

    def test_tool_call_mutates_assignment(self, client, db_session, assignment, chat_session, instructor_token,
                                          fake_model):
        fake_model.script(
            tool_reply("create_block", {"block_type": "paragraph", "position": 0, "content": PARAGRAPH},
                       call_id="call_a", text="Adding an intro."),
            text_reply("Done, the intro is first."),
        )

        frames = run_turn(client, instructor_token, chat_session["id"], assignment.id, "Add an intro")

        assert event_names(frames) == [
            events.CHAT_TEXT,
            events.TOOL_CALL_START,
            events.BLOCK_MUTATION,
            events.TOOL_CALL_COMPLETE,
            events.CHAT_TEXT,
            events.CHAT_COMPLETE,
        ]
        assert frames[2]["data"] == {
            "type": "create", "assignmentId": assignment.id, "blockIndex": 0, "blockType": "paragraph",
        }
        complete = frames[3]["data"]
        assert complete["toolId"] == "call_a"
        assert complete["isError"] is False
        assert complete["result"] == "Created paragraph block at position 0. The assignment now has 4 blocks."

        # The tool result goes back to the model as a user message
        assert fake_model.calls[1]["messages"][-1] == {"role": "user", "content": [{
            "type": "tool_result", "tool_use_id": "call_a", "content": complete["result"], "is_error": False,
        }]}

        db_session.expire_all()
        content = db_session.get(Assignment, assignment.id).content
        assert "Read chapter 2 first." in content
        assert len(db_session.get(ChatSession, chat_session["id"]).messages) == 4

    def test_tool_error_is_reported_to_model(self, client, assignment, chat_session, instructor_token, fake_model):
        fake_model.script(tool_reply("delete_block", {"block_index": 9}), text_reply("That block does not exist."))

        frames = run_turn(client, instructor_token, chat_session["id"], assignment.id)

        complete = next(f["data"] for f in frames if f["event"] == events.TOOL_CALL_COMPLETE)
        assert complete["isError"] is True
        assert complete["result"].startswith("Error: Block index 9 is out of range.")
        assert events.BLOCK_MUTATION not in event_names(frames)
        assert frames[-1]["event"] == events.CHAT_COMPLETE

    def test_iteration_cap(self, client, assignment, chat_session, instructor_token, fake_model, monkeypatch):
        monkeypatch.setattr("courseware.chat.service.CHAT_MAX_TOOL_ITERATIONS", 2)
        fake_model.script(
            tool_reply("get_assignment_state", call_id="c1"),
            tool_reply("get_assignment_state", call_id="c2"),
            text_reply("never reached"),
        )

        frames = run_turn(client, instructor_token, chat_session["id"], assignment.id)

        assert len(fake_model.calls) == 2
        assert frames[-2]["data"]["text"] == TOOL_CAP_NOTICE
        assert frames[-1]["event"] == events.CHAT_COMPLETE

    def test_no_cap_notice_when_model_finishes(self, client, assignment, chat_session, instructor_token, fake_model,
                                               monkeypatch):
        monkeypatch.setattr("courseware.chat.service.CHAT_MAX_TOOL_ITERATIONS", 2)
        fake_model.script(tool_reply("get_assignment_state"), text_reply("All good."))

        frames = run_turn(client, instructor_token, chat_session["id"], assignment.id)

        texts = [f["data"]["text"] for f in frames if f["event"] == events.CHAT_TEXT]
        assert texts == ["All good."]

    def test_model_failure_sends_error(self, client, db_session, assignment, chat_session, instructor_token,
                                       fake_model):
        fake_model.script(RuntimeError("429 Too Many Requests"))

        frames = run_turn(client, instructor_token, chat_session["id"], assignment.id)

        assert frames == [events.chat_error(chat_session["id"], BUSY_ERROR)]
        assert db_session.get(ChatSession, chat_session["id"]).messages == []

    def test_session_must_match_assignment(self, client, db_session, course, assignment, chat_session,
                                           instructor_token):
        other = Assignment(course_id=course.id, name="Other", order=20.0)
        db_session.add(other)
        db_session.commit()

        frames = run_turn(client, instructor_token, chat_session["id"], other.id)

        assert frames == [events.chat_error(chat_session["id"], "Chat session not found")]

    def test_unsupported_and_invalid_frames(self, client, chat_session, instructor_token):
        with client.websocket_connect(f"/ai/chat/ws?token={instructor_token}") as ws:
            ws.send_json({"event": "ping", "data": {}})
            assert ws.receive_json() == events.chat_error(None, "Unsupported event: ping")

            ws.send_json({"event": events.SEND_MESSAGE, "data": {"sessionId": chat_session["id"], "message": ""}})
            assert ws.receive_json() == events.chat_error(
                chat_session["id"], "sessionId, assignmentId, and message are required"
            )

            ws.send_text("not json")
            assert ws.receive_json() == events.chat_error(None, "Invalid message format")

            # The socket stays usable after a bad frame
            ws.send_json({"event": "ping"})
            assert ws.receive_json() == events.chat_error(None, "Unsupported event: ping")

    def test_memory_disabled_hides_tool(self, client, db_session, course, assignment, chat_session,
                                        instructor_token, fake_model):
        course.settings = {"ai_memory_enabled": False}
        db_session.commit()

        run_turn(client, instructor_token, chat_session["id"], assignment.id)

        assert "save_memory" not in fake_model.calls[0]["tools"]

    def test_memories_reach_system_prompt(self, client, db_session, course, instructor, assignment, chat_session,
                                          instructor_token, fake_model):
        db_session.add(ChatMemory(course_id=course.id, user_id=instructor.id, content="Always use 4 options"))
        db_session.commit()

        run_turn(client, instructor_token, chat_session["id"], assignment.id)

        assert "COURSE MEMORIES" in fake_model.calls[0]["system"]
        assert "- Always use 4 options" in fake_model.calls[0]["system"]


class TestModelErrors:

    @pytest.mark.parametrize("message,expected", [
        ("ThrottlingException: slow down", BUSY_ERROR),
        ("Error code: 429", BUSY_ERROR),
        ("RESOURCE_EXHAUSTED", BUSY_ERROR),
        ("Access denied for model", ACCESS_DENIED_ERROR),
        ("No output generated", NO_OUTPUT_ERROR),
        ("InvalidPrompt: blocked", NO_OUTPUT_ERROR),
        ("connection reset", GENERIC_ERROR),
    ])
    def test_describe_by_message(self, message, expected):
        assert describe_model_error(RuntimeError(message)) == expected

    def test_describe_openai_errors(self):
        request = httpx.Request("POST", "https://api.example.com/v1/chat/completions")
        rate_limited = openai.RateLimitError("slow down", response=httpx.Response(429, request=request), body=None)
        denied = openai.PermissionDeniedError("nope", response=httpx.Response(403, request=request), body=None)

        assert describe_model_error(rate_limited) == BUSY_ERROR
        assert describe_model_error(denied) == ACCESS_DENIED_ERROR


def test_resolve_timezone():
    assert resolve_timezone(None) == "America/New_York"
    assert resolve_timezone("Not/AZone") == "America/New_York"
    assert resolve_timezone("Europe/Berlin") == "Europe/Berlin"


def test_system_prompt_without_memories():
    prompt = build_system_prompt("Quiz 1", "Intro to Python", "UTC")

    assert 'Course: "Intro to Python"' in prompt
    assert "Instructor's timezone: UTC" in prompt
    assert "COURSE MEMORIES" not in prompt
