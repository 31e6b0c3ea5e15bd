"""
Natural-language page agent.

PageAgent turns an instruction such as "search for toasters and open the
first result" into browser actions. Each round it snapshots the visible
interactive elements, asks the LLM provider for an action plan, and runs
the plan through the PageDriver, until the model reports the instruction
done or the iteration budget runs out.
"""

import json
import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.services.ai.llm_provider import LLMProvider, LLMProviderError
from app.services.artifact_manager import ArtifactManager, get_artifact_manager
from app.services.page_driver import PageDriver
from app.services.report_branding import vendor_favicon
from app.services.report_generator import escape_html
from app.utils.config import settings

logger = logging.getLogger(__name__)

AGENT_ACTIONS = ("click", "fill", "press", "goto", "scroll", "wait")
MAX_SNAPSHOT_ELEMENTS = 150

ACTION_SCHEMA = {
    "type": "object",
    "properties": {
        "actions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "action": {"type": "string", "enum": list(AGENT_ACTIONS)},
                    "element": {"type": "integer", "description": "id of the target element"},
                    "value": {"type": "string", "description": "text, key, URL or milliseconds"}
                },
                "required": ["action"]
            }
        },
        "done": {"type": "boolean", "description": "true when the instruction is fully complete"},
        "summary": {"type": "string", "description": "what was done or observed"}
    },
    "required": ["actions", "done"]
}

SYSTEM_PROMPT = """You operate a web browser for a user.
You receive an instruction, the current page and a numbered list of interactive elements.
Reply with the next actions to perform, using element ids from the list only.
Actions: click(element), fill(element, value), press(value[, element]), goto(value=url), scroll(value=up|down), wait(value=ms).
Set done to true only when the whole instruction has been carried out on the page.
"""

SNAPSHOT_SCRIPT = """(limit) => {
  const selector = 'a, button, input, textarea, select, [role=button], [role=link], [role=searchbox], [onclick], [contenteditable=true]';
  const visible = (el) => {
    const rect = el.getBoundingClientRect();
    const style = window.getComputedStyle(el);
    return rect.width > 0 && rect.height > 0 && style.visibility !== 'hidden' && style.display !== 'none';
  };
  const items = [];
  document.querySelectorAll('[data-agent-id]').forEach(el => el.removeAttribute('data-agent-id'));
  for (const el of document.querySelectorAll(selector)) {
    if (items.length >= limit) break;
    if (!visible(el) || el.disabled) continue;
    const id = items.length;
    el.setAttribute('data-agent-id', String(id));
    items.push({
      id,
      tag: el.tagName.toLowerCase(),
      type: el.getAttribute('type') || '',
      text: (el.innerText || el.value || '').trim().slice(0, 80),
      placeholder: el.getAttribute('placeholder') || '',
      label: el.getAttribute('aria-label') || el.getAttribute('title') || el.getAttribute('name') || '',
      href: el.getAttribute('href') || ''
    });
  }
  return items;
}"""


class AgentActionError(Exception):
    """The agent could not carry out an instruction."""


def element_selector(element_id: int) -> str:
    return f'[data-agent-id="{element_id}"]'


class PageAgent:
    """Runs natural-language instructions against a page."""

    def __init__(
        self,
        driver: PageDriver,
        provider: LLMProvider,
        report_id: Optional[str] = None,
        max_iterations: Optional[int] = None,
        artifact_manager: Optional[ArtifactManager] = None
    ):
        self.driver = driver
        self.provider = provider
        self.report_id = report_id or datetime.utcnow().strftime("%Y-%m-%d_%H-%M-%S")
        self.max_iterations = max_iterations or settings.AGENT_MAX_ITERATIONS
        self.artifact_manager = artifact_manager or get_artifact_manager()
        self.executions: List[Dict[str, Any]] = []

    async def ai_action(self, instruction: str) -> str:
        """
        Carry out an instruction on the current page.

        Returns:
            The model's summary of what was done

        Raises:
            AgentActionError: On an unusable plan, a failed action or an
                exhausted iteration budget
        """
        record = {
            "instruction": instruction,
            "started_at": datetime.utcnow(),
            "actions": [],
            "success": False,
            "summary": None,
            "error": None,
        }
        self.executions.append(record)
        start = time.monotonic()

        try:
            for iteration in range(1, self.max_iterations + 1):
                elements = await self._snapshot()
                prompt = await self._build_prompt(instruction, elements, record["actions"])

                try:
                    plan = await self.provider.generate_structured(
                        prompt, ACTION_SCHEMA, system_prompt=SYSTEM_PROMPT
                    )
                except LLMProviderError as e:
                    raise AgentActionError(f"Model request failed: {e}") from e

                actions = plan.get("actions") or []
                if not isinstance(actions, list):
                    raise AgentActionError("Model returned a malformed action list")

                known_ids = {element["id"] for element in elements}
                for action in actions:
                    description = await self._execute(action, known_ids)
                    record["actions"].append(description)
                    logger.info(f"Agent action [{iteration}]: {description}")

                if plan.get("done"):
                    record["success"] = True
                    record["summary"] = plan.get("summary") or f"Completed: {instruction}"
                    return record["summary"]

            raise AgentActionError(
                f"Instruction not completed after {self.max_iterations} iterations: {instruction}"
            )

        except AgentActionError as e:
            record["error"] = str(e)
            raise
        finally:
            record["duration_ms"] = int((time.monotonic() - start) * 1000)
            self.write_report()

    async def _snapshot(self) -> List[Dict[str, Any]]:
        try:
            elements = await self.driver.evaluate(SNAPSHOT_SCRIPT, MAX_SNAPSHOT_ELEMENTS)
        except Exception as e:
            raise AgentActionError(f"Could not read the page: {e}") from e
        return elements or []

    async def _build_prompt(
        self,
        instruction: str,
        elements: List[Dict[str, Any]],
        history: List[str]
    ) -> str:
        try:
            title = await self.driver.title()
        except Exception:
            title = ""

        lines = [
            f"Instruction: {instruction}",
            f"Current URL: {self.driver.url}",
            f"Page title: {title}",
            "",
            "Interactive elements:",
        ]
        for element in elements:
            lines.append(json.dumps(element, ensure_ascii=False))
        if not elements:
            lines.append("(none)")
        if history:
            lines.extend(["", "Actions already performed:"])
            lines.extend(f"- {entry}" for entry in history)
        return "\n".join(lines)

    async def _execute(self, action: Dict[str, Any], known_ids: set) -> str:
        name = action.get("action")
        if name not in AGENT_ACTIONS:
            raise AgentActionError(f"Unsupported action: {name}")

        element_id = action.get("element")
        value = action.get("value")
        selector = None

        if element_id is not None:
            try:
                element_id = int(element_id)
            except (TypeError, ValueError):
                raise AgentActionError(f"Invalid element reference: {element_id!r}")

        if name in ("click", "fill") or (name == "press" and element_id is not None):
            if element_id not in known_ids:
                raise AgentActionError(f"Element {element_id} not found on the page for {name}")
            selector = element_selector(element_id)
        if name in ("fill", "press", "goto") and not value:
            raise AgentActionError(f"Action {name} requires a value")

        try:
            if name == "click":
                await self.driver.click(selector)
            elif name == "fill":
                await self.driver.fill(selector, str(value))
            elif name == "press":
                await self.driver.press(str(value), selector)
            elif name == "goto":
                await self.driver.goto(str(value))
            elif name == "scroll":
                await self.driver.scroll(0, -600 if str(value).lower() == "up" else 600)
            else:
                await self.driver.wait(min(int(value or 1000), 10000))
        except AgentActionError:
            raise
        except Exception as e:
            raise AgentActionError(f"Action {name} failed: {e}") from e

        parts = [name]
        if element_id is not None:
            parts.append(f"#{element_id}")
        if value:
            parts.append(repr(value))
        return " ".join(parts)

    def write_report(self) -> Optional[str]:
        """Write the agent report; failures are logged, never raised."""
        try:
            path = self.artifact_manager.agent_report_path(self.report_id)
            path.write_text(self._render_report(), encoding="utf-8")
            return str(path)
        except OSError as e:
            logger.warning(f"Agent report not written: {e}")
            return None

    def _render_report(self) -> str:
        vendor = escape_html(settings.AGENT_VENDOR_NAME)
        rows = ""
        for index, record in enumerate(self.executions, start=1):
            status = "passed" if record["success"] else ("failed" if record["error"] else "running")
            actions = "".join(f"<li>{escape_html(a)}</li>" for a in record["actions"]) or "<li>No actions</li>"
            detail = record["summary"] or record["error"] or ""
            rows += f"""
        <div class="task {status}">
            <h3>{index}. {escape_html(record["instruction"])}</h3>
            <p class="meta">{record["started_at"].strftime("%Y-%m-%d %H:%M:%S")} UTC | {record.get("duration_ms", 0)}ms | {status}</p>
            <ul>{actions}</ul>
            <p>{escape_html(detail)}</p>
        </div>"""

        return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>Report - {vendor}</title>
    <link rel="icon" href="{vendor_favicon()}">
    <style>
        body {{ font-family: system-ui, sans-serif; margin: 0; padding: 20px; background: #f8fafc; }}
        .task {{ background: white; border-left: 4px solid #94a3b8; border-radius: 6px; padding: 12px 16px; margin-bottom: 12px; }}
        .task.passed {{ border-color: #10b981; }}
        .task.failed {{ border-color: #ef4444; }}
        .meta {{ color: #64748b; font-size: 0.9em; }}
    </style>
</head>
<body>
    <h1>{vendor} Report</h1>
    <p class="meta">Report ID: {escape_html(self.report_id)}</p>
    {rows}
</body>
</html>
"""

