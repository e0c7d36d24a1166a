import asyncio
import logging
from types import SimpleNamespace

import pytest

from agent.mock_vllm import app, detect_role, role_calls
from screenpilot.agent.guide import AgentState, GuideModelConfig, GuideOrchestrator, OpenAIGuideLLM
from screenpilot.agent.guide.prompt_profiles import DEFAULT_PROFILE, build_watcher_prompt


class FlaskCompletions:
    """Routes `chat.completions.create` calls into the mock server's test client."""

    def __init__(self, client):
        self.client = client

    async def create(self, **kwargs):
        resp = self.client.post("/v1/chat/completions", json=kwargs)
        assert resp.status_code == 200
        data = resp.get_json()
        choices = [SimpleNamespace(message=SimpleNamespace(content=c["message"]["content"])) for c in data["choices"]]
        return SimpleNamespace(choices=choices)


@pytest.fixture
def mock_client():
    role_calls.clear()
    app.config["TESTING"] = True
    # No `with`: requests are issued from asyncio tasks, outside a preserved request context.
    yield app.test_client()
    role_calls.clear()


def test_models_endpoint(mock_client):
    data = mock_client.get("/v1/models").get_json()
    assert data["data"][0]["id"] == "mock-guide-vl"


def test_detect_role_reads_text_parts():
    messages = [
        {
            "role": "user",
            "content": [
                {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"}},
                {"type": "text", "text": build_watcher_prompt(DEFAULT_PROFILE, "window open")},
            ],
        }
    ]
    assert detect_role(messages) == "watcher"
    assert detect_role([{"role": "user", "content": "hello"}]) == "unknown"


def test_full_session_against_mock_server(mock_client, screens, image, caplog):
    caplog.set_level(logging.WARNING, logger="screenpilot.agent.guide.llm")
    client = SimpleNamespace(chat=SimpleNamespace(completions=FlaskCompletions(mock_client)))
    llm = OpenAIGuideLLM(
        "EMPTY", "http://mock/v1", GuideModelConfig().with_defaults("mock-model"), retry_delay_s=0, client=client
    )

    async def main():
        guide = GuideOrchestrator(llm, screens)
        await guide.start_session("Create a repository called demo-repo", image)
        assert guide.state == AgentState("watching")
        assert guide.progress == (0, 2)
        assert guide.instruction_text == "Click the browser icon in the dock"

        # The mock judge says "not yet" on every odd call.
        await guide.check_step_completion(image)
        assert guide.progress == (0, 2)
        await guide.check_step_completion(image)
        assert guide.progress == (1, 2)
        assert guide.value_to_copy == "demo-repo"
        assert guide.context.blackboard == {"repo_name": "demo-repo"}

        await guide.check_step_completion(image)
        await guide.check_step_completion(image)
        assert guide.state == AgentState("completed")
        assert guide.context.history_summary == ["Completed milestone step 1.", "Completed milestone step 2."]

    asyncio.run(main())
    assert dict(role_calls) == {"planner": 1, "navigator": 2, "watcher": 4, "summarizer": 2}
    # Every call succeeded on its first attempt.
    assert not [r for r in caplog.records if r.name == "screenpilot.agent.guide.llm"]
