from __future__ import annotations

import unittest
from types import SimpleNamespace
from unittest import mock

import httpx
import openai

from meal_planner.config import Settings
from meal_planner.errors import GenerationTimeoutError, ServiceNotConfiguredError, UpstreamServiceError
from meal_planner.services.openai_responses import call_openai_responses


def _call():
    return call_openai_responses(
        model="gpt-test",
        system_prompt="system",
        user_prompt="user",
        max_output_tokens=100,
        temperature=0.5,
        timeout=30,
    )


class CallOpenAIResponsesTest(unittest.TestCase):
    def setUp(self):
        self.settings = Settings(openai_api_key="sk-test")
        patcher = mock.patch(
            "meal_planner.services.openai_responses.get_settings", return_value=self.settings
        )
        patcher.start()
        self.addCleanup(patcher.stop)
        self.request = httpx.Request("POST", "https://api.openai.com/v1/responses")

    def _client_returning(self, **kwargs):
        client = mock.Mock()
        client.responses.create = mock.Mock(**kwargs)
        return client

    def test_returns_output_text_without_retries(self):
        response = SimpleNamespace(status="completed", output_text="  [] \n")
        client = self._client_returning(return_value=response)
        with mock.patch("meal_planner.services.openai_responses.OpenAI", return_value=client) as client_cls:
            self.assertEqual(_call(), "[]")
        client_cls.assert_called_once_with(api_key="sk-test", timeout=30, max_retries=0)
        kwargs = client.responses.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "gpt-test")
        self.assertEqual(kwargs["temperature"], 0.5)
        self.assertEqual(kwargs["input"][1], {"role": "user", "content": "user"})

    def test_falls_back_to_output_blocks(self):
        response = SimpleNamespace(
            status="completed",
            output_text="",
            output=[SimpleNamespace(content=[SimpleNamespace(text="[{"), SimpleNamespace(text="}]")])],
        )
        client = self._client_returning(return_value=response)
        with mock.patch("meal_planner.services.openai_responses.OpenAI", return_value=client):
            self.assertEqual(_call(), "[{}]")

    def test_missing_key_is_not_configured(self):
        self.settings.openai_api_key = None
        with mock.patch("meal_planner.services.openai_responses.OpenAI") as client_cls:
            with self.assertRaises(ServiceNotConfiguredError):
                _call()
        client_cls.assert_not_called()

    def test_timeout_maps_to_timeout_error(self):
        client = self._client_returning(side_effect=openai.APITimeoutError(request=self.request))
        with mock.patch("meal_planner.services.openai_responses.OpenAI", return_value=client):
            with self.assertRaises(GenerationTimeoutError):
                _call()
        self.assertEqual(client.responses.create.call_count, 1)

    def test_error_status_maps_to_upstream_error(self):
        error = openai.APIStatusError(
            "server exploded",
            response=httpx.Response(500, request=self.request),
            body=None,
        )
        client = self._client_returning(side_effect=error)
        with mock.patch("meal_planner.services.openai_responses.OpenAI", return_value=client):
            with self.assertRaises(UpstreamServiceError) as ctx:
                _call()
        self.assertEqual(ctx.exception.message, "OpenAI API error: 500")

    def test_incomplete_or_empty_output_is_upstream_error(self):
        incomplete = SimpleNamespace(
            status="incomplete",
            incomplete_details=SimpleNamespace(reason="max_output_tokens"),
            output_text="[",
        )
        empty = SimpleNamespace(status="completed", output_text="", output=[])
        for response in (incomplete, empty):
            client = self._client_returning(return_value=response)
            with mock.patch("meal_planner.services.openai_responses.OpenAI", return_value=client):
                with self.assertRaises(UpstreamServiceError):
                    _call()


if __name__ == "__main__":
    unittest.main()
