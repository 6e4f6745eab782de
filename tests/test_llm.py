from unittest.mock import MagicMock, patch

from agent.llm import choose_element, extract_json_from_response

ELEMENTS = [
    {"id": "1", "tag": "button", "label": "Continue with GitHub"},
    {"id": "2", "tag": "button", "label": "Continue with Google"},
]


def test_extract_json_from_wrapped_response():
    text = 'Sure! {"id": "1", "reason": "GitHub login",} done'
    assert extract_json_from_response(text) == {"id": "1", "reason": "GitHub login"}


def test_choose_element_without_client_returns_none():
    with patch("agent.llm.settings") as mock_settings:
        mock_settings.ACTION_LLM_PROVIDER = "anthropic"
        mock_settings.anthropic_client = None
        assert choose_element("click sign in with github", ELEMENTS) is None


def test_choose_element_uses_llm_answer():
    with patch("agent.llm.settings") as mock_settings, patch(
        "agent.llm.get_llm_response", return_value='{"id": "1", "reason": "GitHub"}'
    ) as mock_llm:
        mock_settings.ACTION_LLM_PROVIDER = "anthropic"
        mock_settings.anthropic_client = MagicMock()
        assert choose_element("click sign in with github", ELEMENTS) == "1"

    prompt = mock_llm.call_args[0][1]
    assert "[1] <button> Continue with GitHub" in prompt


def test_choose_element_null_answer():
    with patch("agent.llm.settings") as mock_settings, patch(
        "agent.llm.get_llm_response", return_value='{"id": null, "reason": "nothing fits"}'
    ):
        mock_settings.ACTION_LLM_PROVIDER = "anthropic"
        mock_settings.anthropic_client = MagicMock()
        assert choose_element("click the download button", ELEMENTS) is None


def test_choose_element_provider_error_returns_none():
    client = MagicMock()
    client.messages.create.side_effect = RuntimeError("Connection error.")
    with patch("agent.llm.settings") as mock_settings, patch("agent.llm.time.sleep") as mock_sleep:
        mock_settings.ACTION_LLM_PROVIDER = "anthropic"
        mock_settings.anthropic_client = client
        assert choose_element("click sign in with github", ELEMENTS) is None

    assert client.messages.create.call_count == 3
    assert mock_sleep.call_count == 2
