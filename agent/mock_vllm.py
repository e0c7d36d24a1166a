import json
import logging
import time
from collections import defaultdict

from flask import Flask, jsonify, request

app = Flask(__name__)
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("MockGuideVLM")

MOCK_MODEL = "mock-guide-vl"

# Scenario state: calls seen per role
role_calls = defaultdict(int)

PLAN = {
    "goals": [
        {"id": 1, "title": "Open the browser", "description": "Launch the web browser from the dock"},
        {"id": 2, "title": "Create the repository", "description": "Fill in the new repository form and submit it"},
    ]
}

INSTRUCTIONS = [
    {
        "instruction": "Click the browser icon in the dock",
        "success_criteria": "A browser window is open",
        "memory_to_save": {},
        "value_to_copy": None,
    },
    {
        "instruction": "Type the repository name into the Name field and press Create",
        "success_criteria": "The new repository page is shown",
        "memory_to_save": {"repo_name": "demo-repo"},
        "value_to_copy": "demo-repo",
    },
]


def detect_role(messages):
    """Route by the role prompt's opening line (see screenpilot.agent.guide.prompt_profiles)."""
    text = ""
    for msg in messages:
        content = msg.get("content", "")
        if isinstance(content, str):
            text += content
        else:
            text += " ".join(part.get("text", "") for part in content if part.get("type") == "text")
    if "automation planner" in text:
        return "planner"
    if "navigator" in text:
        return "navigator"
    if "boolean judge" in text:
        return "watcher"
    if "summarizer" in text:
        return "summarizer"
    return "unknown"


def scripted_content(role, n):
    if role == "planner":
        return json.dumps(PLAN)
    if role == "navigator":
        return json.dumps(INSTRUCTIONS[min(n - 1, len(INSTRUCTIONS) - 1)])
    if role == "watcher":
        # Every other check succeeds, so each step is seen "not yet done" once.
        done = n % 2 == 0
        reasoning = "The expected window is visible." if done else "The screen has not changed yet."
        return json.dumps({"is_complete": done, "reasoning": reasoning})
    if role == "summarizer":
        return f"Completed milestone step {n}."
    return "I am not sure what you want."


def completion_payload(role, n, model, content):
    """Minimal OpenAI chat.completion body; token counts are rough word counts."""
    completion_tokens = len(content.split())
    return {
        "id": f"chatcmpl-mock-{role}-{n}",
        "object": "chat.completion",
        "created": int(time.time()),
        "model": model,
        "choices": [
            {"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}
        ],
        "usage": {"prompt_tokens": 0, "completion_tokens": completion_tokens, "total_tokens": completion_tokens},
    }


@app.route("/v1/chat/completions", methods=["POST"])
def chat_completions():
    data = request.json or {}
    messages = data.get("messages", [])
    role = detect_role(messages)
    role_calls[role] += 1
    n = role_calls[role]
    logger.info(f"[{role}] request #{n} ({len(messages)} messages)")
    return jsonify(completion_payload(role, n, data.get("model", MOCK_MODEL), scripted_content(role, n)))


@app.route("/v1/models", methods=["GET"])
def list_models():
    return jsonify({"object": "list", "data": [{"id": MOCK_MODEL, "object": "model", "owned_by": "screenpilot-mock"}]})


if __name__ == "__main__":
    print("Starting mock guide VLM on port 8080 (roles: planner, navigator, watcher, summarizer)...")
    app.run(host="0.0.0.0", port=8080)
