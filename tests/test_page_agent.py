"""Tests for the natural-language page agent."""

import pytest

from app.services.ai import LLMProviderError, MockProvider
from app.services.artifact_manager import ArtifactManager
from app.services.page_agent import AgentActionError, PageAgent, element_selector
from tests.fakes import FakePageDriver

ELEMENTS = [
    {"id": 0, "tag": "input", "type": "search", "text": "", "placeholder": "Search", "label": "", "href": ""},
    {"id": 1, "tag": "button", "type": "submit", "text": "Go", "placeholder": "", "label": "", "href": ""},
]


class FailingProvider(MockProvider):

    async def generate_structured(self, prompt, schema, system_prompt=None, temperature=None):
        raise LLMProviderError("rate limited")


def _agent(tmp_path, responses, elements=ELEMENTS, max_iterations=3, provider=None):
    driver = FakePageDriver(elements=list(elements), url="https://shop.example")
    provider = provider or MockProvider({"responses": responses})
    artifact_manager = ArtifactManager(base_path=str(tmp_path / "artifacts"), agent_report_dirs=[str(tmp_path)])
    agent = PageAgent(
        driver, provider, report_id="r1", max_iterations=max_iterations, artifact_manager=artifact_manager
    )
    return agent, driver, provider


class TestAiAction:
    """Tests for PageAgent.ai_action."""

    @pytest.mark.asyncio
    async def test_executes_plan(self, tmp_path):
        """Should run the planned actions and return the summary."""
        agent, driver, provider = _agent(tmp_path, [{
            "actions": [
                {"action": "fill", "element": 0, "value": "toaster"},
                {"action": "press", "value": "Enter", "element": "0"},
            ],
            "done": True,
            "summary": "Searched for toaster"
        }])

        result = await agent.ai_action('search for "toaster"')

        assert result == "Searched for toaster"
        assert ("fill", element_selector(0), "toaster") in driver.calls
        assert ("press", "Enter", element_selector(0)) in driver.calls
        assert 'Instruction: search for "toaster"' in provider.prompts[0]
        assert "https://shop.example" in provider.prompts[0]

    @pytest.mark.asyncio
    async def test_iterates_until_done(self, tmp_path):
        """Should keep planning and pass the action history along."""
        agent, driver, provider = _agent(tmp_path, [
            {"actions": [{"action": "click", "element": 1}], "done": False},
            {"actions": [], "done": True, "summary": "Opened result"},
        ])

        assert await agent.ai_action("open the first result") == "Opened result"
        assert len(provider.prompts) == 2
        assert "click #1" in provider.prompts[1]

    @pytest.mark.asyncio
    async def test_unknown_element(self, tmp_path):
        """Should fail when the plan names an element that is not on the page."""
        agent, _, _ = _agent(tmp_path, [{"actions": [{"action": "click", "element": 9}], "done": True}])

        with pytest.raises(AgentActionError, match="Element 9 not found"):
            await agent.ai_action("click the basket")

    @pytest.mark.asyncio
    async def test_unsupported_action(self, tmp_path):
        """Should reject actions outside the supported set."""
        agent, _, _ = _agent(tmp_path, [{"actions": [{"action": "hover", "element": 0}], "done": True}])

        with pytest.raises(AgentActionError, match="Unsupported action"):
            await agent.ai_action("hover the menu")

    @pytest.mark.asyncio
    async def test_iteration_budget(self, tmp_path):
        """Should give up after the configured number of rounds."""
        not_done = {"actions": [{"action": "scroll", "value": "down"}], "done": False}
        agent, driver, _ = _agent(tmp_path, [not_done] * 5, max_iterations=2)

        with pytest.raises(AgentActionError, match="after 2 iterations"):
            await agent.ai_action("find the footer")
        assert driver.calls.count(("scroll", 0, 600)) == 2

    @pytest.mark.asyncio
    async def test_provider_error(self, tmp_path):
        """Should turn model failures into agent errors."""
        agent, _, _ = _agent(tmp_path, [], provider=FailingProvider({}))

        with pytest.raises(AgentActionError, match="rate limited"):
            await agent.ai_action("click go")

    @pytest.mark.asyncio
    async def test_default_mock_reports_done(self, tmp_path):
        """Should finish at once when the mock has no scripted plan."""
        agent, driver, _ = _agent(tmp_path, [])

        assert "no browser actions" in await agent.ai_action("look around")
        assert driver.calls == []


class TestAgentReport:
    """Tests for the agent's own report."""

    @pytest.mark.asyncio
    async def test_report_written_with_vendor_title(self, tmp_path):
        """Should write a vendor-titled report for every call, passed or failed."""
        agent, _, _ = _agent(tmp_path, [
            {"actions": [], "done": True, "summary": "ok"},
            {"actions": [{"action": "click", "element": 42}], "done": True},
        ])

        await agent.ai_action("first <instruction>")
        with pytest.raises(AgentActionError):
            await agent.ai_action("second")

        html = (tmp_path / "agent-report_r1.html").read_text(encoding="utf-8")
        assert "<title>Report - Page Agent</title>" in html
        assert "first &lt;instruction&gt;" in html
        assert 'class="task passed"' in html
        assert 'class="task failed"' in html
