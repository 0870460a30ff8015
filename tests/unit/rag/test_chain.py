"""Tests for the ordered generation fallback chain."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from herdsafe.errors import GenerationFailed, ServiceUnavailable
from herdsafe.rag.chain import GenerationChain, GenerationStep


def _steps():
    return [
        GenerationStep("primary", "huggingface/big", "prompt-1", max_tokens=300, temperature=0.3, top_p=0.9),
        GenerationStep("fallback", "huggingface/small", "prompt-2", max_tokens=100, temperature=0.7,
                       shape=lambda raw: f"[{raw}]"),
    ]


def test_first_success_wins():
    with patch("herdsafe.rag.chain.llm_client.complete", return_value="answer") as mock_complete:
        result = GenerationChain(_steps()).run()
    assert (result.text, result.step, result.model) == ("answer", "primary", "huggingface/big")
    assert mock_complete.call_count == 1
    assert mock_complete.call_args.kwargs["top_p"] == 0.9


def test_falls_through_and_applies_shape():
    with patch(
        "herdsafe.rag.chain.llm_client.complete",
        side_effect=[GenerationFailed("down"), "raw"],
    ) as mock_complete:
        result = GenerationChain(_steps(), timeout=7.0).run()
    assert result.text == "[raw]"
    assert result.step == "fallback"
    assert mock_complete.call_args.args == ("huggingface/small", "prompt-2")
    assert mock_complete.call_args.kwargs["timeout"] == 7.0


def test_default_used_when_all_fail():
    with patch("herdsafe.rag.chain.llm_client.complete", side_effect=GenerationFailed("down")):
        result = GenerationChain(_steps(), default=lambda: "canned").run()
    assert result.text == "canned"
    assert result.step == "default"
    assert result.model is None


def test_raises_when_all_fail_without_default():
    with patch("herdsafe.rag.chain.llm_client.complete", side_effect=GenerationFailed("down")):
        with pytest.raises(GenerationFailed, match="primary: down"):
            GenerationChain(_steps()).run()


def test_untolerated_error_propagates():
    with patch("herdsafe.rag.chain.llm_client.complete", side_effect=ServiceUnavailable("no key")):
        with pytest.raises(ServiceUnavailable):
            GenerationChain(_steps(), default=lambda: "canned").run()


def test_tolerated_service_unavailable_reaches_default():
    with patch("herdsafe.rag.chain.llm_client.complete", side_effect=ServiceUnavailable("no key")):
        result = GenerationChain(
            _steps(),
            default=lambda: "canned",
            tolerate=(GenerationFailed, ServiceUnavailable),
        ).run()
    assert result.text == "canned"
