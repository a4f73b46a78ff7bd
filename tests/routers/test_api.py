"""
API route tests
===============

Runs the FastAPI app through TestClient with the pipeline and the
deep-dive agent replaced by stubs.
"""

import pytest
from fastapi.testclient import TestClient

from config.settings import config
from main import app
from models.common import DiagramType
from models.generation import FactMetadata, GenerationResult
from routers.api import get_deep_dive_agent, get_pipeline
from services.error_handler import LLMConfigurationError, ParseError, QueryValidationError
from services.performance_tracker import performance_tracker

RESULT = GenerationResult(
    diagram_type=DiagramType.RADIAL_MINDMAP,
    universal_content="Rome grew from a city state into an empire.",
    structured_content="Main topic: Roman Empire\n- Founded in 27 BC",
    diagram_source='flowchart TD\n    A("Roman Empire") --> B[Founded in 27 BC]',
    diagram_meta=[FactMetadata(theme='history', keywords=['augustus'], search_hint='founding of the roman empire', entity='Roman Empire')],
)


class StubPipeline:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def generate(self, request, timer=None):
        self.calls.append((request.query, request.diagram_type_hint))
        if self.error is not None:
            raise self.error
        return self.result


class StubDeepDiveAgent:
    def __init__(self, answer="Augustus became the first emperor.", error=None):
        self._answer = answer
        self.error = error

    async def answer(self, selected_text, question, original_query=None):
        if self.error is not None:
            raise self.error
        if not (selected_text or '').strip():
            raise QueryValidationError("Selected text is required", stage='validation')
        return self._answer


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


def use_pipeline(pipeline):
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    return pipeline


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "version": config.VERSION}


class TestDescribe:
    """POST /api/describe"""

    def test_success(self, client):
        pipeline = use_pipeline(StubPipeline(result=RESULT))

        response = client.post("/api/describe", json={"query": "Roman Empire"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["query"] == "Roman Empire"
        assert data["diagram_type"] == "radial_mindmap"
        assert data["universal_content"] == RESULT.universal_content
        assert data["content"] == data["description"] == RESULT.structured_content
        assert data["diagram"] == data["rendered_content"] == RESULT.diagram_source
        assert data["render_type"] == "html"
        assert data["diagram_meta"] == [{
            'theme': 'history',
            'keywords': ['augustus'],
            'search': 'founding of the roman empire',
            'entity': 'Roman Empire',
        }]
        assert data["request_id"].startswith("req_")
        assert pipeline.calls == [("Roman Empire", None)]

    def test_diagram_type_alias(self, client):
        pipeline = use_pipeline(StubPipeline(result=RESULT))

        client.post("/api/describe", json={"query": "Roman Empire", "diagram_type": "mindmap"})

        assert pipeline.calls[0][1] == DiagramType.RADIAL_MINDMAP

    def test_unknown_diagram_type_rejected(self, client):
        use_pipeline(StubPipeline(result=RESULT))

        response = client.post("/api/describe", json={"query": "Roman Empire", "diagram_type": "gantt"})

        assert response.status_code == 422

    @pytest.mark.parametrize('payload', [{"query": "   "}, {"query": ""}, {}])
    def test_blank_query(self, client, payload):
        pipeline = use_pipeline(StubPipeline(result=RESULT))

        response = client.post("/api/describe", json=payload)

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["error_type"] == "validation_error"
        assert data["stage"] == "validation"
        assert pipeline.calls == []

    def test_pipeline_failure(self, client):
        use_pipeline(StubPipeline(error=ParseError("Content has no facts", stage='content')))

        response = client.post("/api/describe", json={"query": "Roman Empire"})

        assert response.status_code == 500
        data = response.json()
        assert data["error_type"] == "parse_error"
        assert data["stage"] == "content"
        assert data["detail"] == "Content has no facts"
        assert data["request_id"].startswith("req_")

    def test_configuration_failure(self, client):
        use_pipeline(StubPipeline(error=LLMConfigurationError("OPENAI_API_KEY is not configured", stage='configuration')))

        response = client.post("/api/describe", json={"query": "Roman Empire"})

        assert response.status_code == 500
        assert response.json()["error_type"] == "configuration_error"

    def test_unexpected_failure(self, client):
        use_pipeline(StubPipeline(error=RuntimeError("boom")))

        response = client.post("/api/describe", json={"query": "Roman Empire"})

        assert response.status_code == 500
        assert response.json()["error_type"] == "internal_error"


class TestDeepDive:
    """POST /api/deep-dive"""

    def test_success(self, client):
        app.dependency_overrides[get_deep_dive_agent] = lambda: StubDeepDiveAgent()

        response = client.post("/api/deep-dive", json={
            "selected_text": "Augustus",
            "question": "Who was he?",
            "original_query": "Roman Empire",
        })

        assert response.status_code == 200
        assert response.json() == {"success": True, "response": "Augustus became the first emperor."}

    def test_blank_selection(self, client):
        app.dependency_overrides[get_deep_dive_agent] = lambda: StubDeepDiveAgent()

        response = client.post("/api/deep-dive", json={"selected_text": " ", "question": "Why?"})

        assert response.status_code == 400
        assert response.json()["error_type"] == "validation_error"


class TestMetrics:
    def test_model_metrics(self, client):
        performance_tracker.reset_metrics('route-test-model')
        performance_tracker.record_request('route-test-model', 1.0, True)

        response = client.get("/api/llm/metrics", params={"model": "route-test-model"})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "success"
        assert data["metrics"]["total_requests"] == 1
        assert isinstance(data["timestamp"], int)
