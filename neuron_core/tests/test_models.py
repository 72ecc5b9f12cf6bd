from dataclasses import FrozenInstanceError
from datetime import timezone

import pytest

from neuron_core.domain.exceptions import FailureKind, TransportError, classify_failure
from neuron_core.domain.models import GenerationConfig, Message, ModelCandidate


def test_message_create():
    m = Message.create("user", "hi")
    assert m.role == "user"
    assert m.id.startswith("m-")
    assert m.created_at.tzinfo == timezone.utc
    with pytest.raises(FrozenInstanceError):
        m.text = "changed"


def test_model_candidate_from_descriptor():
    c = ModelCandidate.from_descriptor(
        {"name": "models/gemini-1.5-flash", "supportedGenerationMethods": ["generateContent", "countTokens"]}
    )
    assert c.name == "gemini-1.5-flash"
    assert c.supports_generation is True
    e = ModelCandidate.from_descriptor({"name": "models/embedding-001", "supportedGenerationMethods": ["embedContent"]})
    assert e.supports_generation is False
    assert ModelCandidate.from_descriptor({}).supports_generation is False


def test_generation_config_payload():
    cfg = GenerationConfig(temperature=0.2, top_p=0.95, max_output_tokens=2048, top_k=40, extra={"candidateCount": 1})
    assert cfg.to_payload() == {
        "temperature": 0.2,
        "topP": 0.95,
        "maxOutputTokens": 2048,
        "topK": 40,
        "candidateCount": 1,
    }


@pytest.mark.parametrize(
    "detail, kind",
    [
        ("models/gemini-1.0-pro is not found for API version v1beta", FailureKind.MODEL_NOT_FOUND),
        ("Call ListModels to see the list of available models", FailureKind.MODEL_NOT_FOUND),
        ('{"error": {"status": "NOT_FOUND"}}', FailureKind.MODEL_NOT_FOUND),
        ('Invalid JSON payload received. Unknown name "systemInstruction": Cannot find field.', FailureKind.INSTRUCTION_FIELD_REJECTED),
        ("Internal error encountered.", FailureKind.OTHER),
        ("", FailureKind.OTHER),
    ],
)
def test_classify_failure(detail, kind):
    assert classify_failure(detail) is kind


def test_transport_error_detail_defaults_to_empty():
    assert TransportError(code="NETWORK_ERROR", message="timed out").detail == ""
    assert TransportError(code="API_ERROR", message="x", detail="body").detail == "body"
