from __future__ import annotations

import json

import httpx
import pytest

from uptime.config import LLMConfig
from uptime.interfaces.llm import ChatClient
from uptime.interfaces.tasks import (
    CodeTask,
    ConfigTask,
    LogTask,
    TaskGenerator,
    parse_task,
)

CONFIG_TASK = {
    "type": "config",
    "data": {
        "filename": "redis.conf",
        "content": "maxmemory 2gb\nmaxmemory-policy noeviction\n",
        "targetKey": "maxmemory-policy",
        "currentValue": "noeviction",
        "targetValue": "allkeys-lru",
    },
}


def test_config_task_parses() -> None:
    task = parse_task(json.dumps(CONFIG_TASK))

    assert isinstance(task, ConfigTask)
    assert task.data.target_key == "maxmemory-policy"


def test_numeric_config_values_are_coerced() -> None:
    payload = {
        "type": "config",
        "data": {
            "filename": "postgresql.conf",
            "content": "max_connections=100\nshared_buffers=1GB",
            "targetKey": "max_connections",
            "currentValue": 100,
            "targetValue": 400,
        },
    }

    task = parse_task(json.dumps(payload))

    assert isinstance(task, ConfigTask)
    assert task.data.current_value == "100"


def test_inconsistent_config_is_rejected() -> None:
    same = {**CONFIG_TASK, "data": {**CONFIG_TASK["data"], "targetValue": "noeviction"}}
    missing = {**CONFIG_TASK, "data": {**CONFIG_TASK["data"], "currentValue": "volatile-lru"}}

    assert parse_task(json.dumps(same)) is None
    assert parse_task(json.dumps(missing)) is None


def test_log_task_needs_target_error_in_logs() -> None:
    logs = [f"INFO request {i} ok" for i in range(50)] + ["ERROR connection refused: db_primary:5432"]
    good = {"type": "log", "data": {"logs": logs, "targetError": "connection refused"}}
    bad = {"type": "log", "data": {"logs": logs[:50], "targetError": "connection refused"}}

    assert isinstance(parse_task(json.dumps(good)), LogTask)
    assert parse_task(json.dumps(bad)) is None


def test_code_task_bug_pattern_rules() -> None:
    data = {
        "filename": "pool.py",
        "code": "pool = Pool(size=5)\n",
        "issue": "pool too small",
        "expectedFix": "pool = Pool(size=50)\n",
        "bugPattern": "size=5)",
    }
    fixed_badly = {**data, "expectedFix": "pool = Pool(size=5)  # TODO\n"}

    assert isinstance(parse_task(json.dumps({"type": "code", "data": data})), CodeTask)
    assert parse_task(json.dumps({"type": "code", "data": fixed_badly})) is None


def test_other_task_kinds_parse() -> None:
    replies = [
        {"type": "terminal", "data": {"prompt": "$", "command": "kubectl rollout restart", "expectedCompletion": "deployment/app"}},
        {
            "type": "button-sequence",
            "data": {"title": "Failover", "steps": [{"label": "Promote replica", "buttonText": "Promote", "correct": True}]},
        },
        {
            "type": "drag-drop",
            "data": {
                "title": "Route traffic",
                "items": [{"id": "i1", "label": "/api", "correctTarget": "t1"}],
                "targets": [{"id": "t1", "label": "app"}],
            },
        },
        {"type": "multi-choice", "data": {"question": "Why?", "options": [{"id": "a", "text": "OOM", "correct": True}]}},
        {"type": "diagram", "data": {"title": "Topology", "nodes": [{"id": "app", "label": "App"}]}},
        {"type": "monitor", "data": {"title": "Latency", "metrics": [{"name": "p95", "current": 900, "target": 300, "threshold": "below"}]}},
    ]

    for reply in replies:
        task = parse_task(json.dumps(reply))
        assert task is not None, reply["type"]
        assert task.type == reply["type"]


def test_structurally_broken_tasks_are_rejected() -> None:
    assert parse_task('{"type": "hologram", "data": {}}') is None
    assert parse_task('{"type": "multi-choice", "data": {"question": "?", "options": [{"id": "a", "text": "x", "correct": false}]}}') is None
    assert parse_task(
        '{"type": "drag-drop", "data": {"title": "t", "items": [{"id": "i", "label": "l", "correctTarget": "nowhere"}], "targets": []}}'
    ) is None


@pytest.mark.asyncio
async def test_generator_requests_with_task_temperature() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        content = "```json\n" + json.dumps(CONFIG_TASK) + "\n```"
        return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        generator = TaskGenerator(ChatClient(LLMConfig(api_key="k"), client=http))
        task = await generator.generate(
            "Cache Eviction Storm", "hot keys evicted", "Change eviction policy", "switch to LRU", "cache"
        )

    assert isinstance(task, ConfigTask)
    assert seen[0]["temperature"] == pytest.approx(1.0)
    assert "Target Node: cache" in seen[0]["messages"][1]["content"]


@pytest.mark.asyncio
async def test_generator_returns_none_on_http_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        generator = TaskGenerator(ChatClient(LLMConfig(api_key="k"), client=http))
        assert await generator.generate("a", "b", "c", "d", "app") is None
