"""Browser verification of a deployed scenario app with Playwright.

A scenario's verification steps are rendered into a Playwright spec,
run with ``npx playwright test`` under a fixed time ceiling, and the
list reporter's per-test markers are mapped back onto the steps.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import re
import shutil
import tempfile
from pathlib import Path

from pydantic import BaseModel, Field

from sortie.models.result import Run, VerifyResult
from sortie.models.scenario import Scenario, VerifyStep

logger = logging.getLogger(__name__)

VERIFY_TIMEOUT_SECONDS = 2 * 60
ENDPOINT_PLACEHOLDER = "{{endpoint}}"
ENDPOINT_KEYS = (
    "AZURE_STATIC_WEB_APP_URL",
    "SERVICE_WEB_ENDPOINT_URL",
    "WEBSITE_URL",
    "AZURE_WEBAPP_URL",
)
ENDPOINT_DISCOVERY_STEP = "endpoint_discovery"

PLAYWRIGHT_CONFIG = """\
import { defineConfig } from '@playwright/test';
export default defineConfig({
  timeout: 30000,
  use: { headless: true },
  reporter: 'list',
});
"""

_PASS_MARKS = "✓✔"
_FAIL_MARKS = "✘✗×"


class VerificationResult(BaseModel):
    """Outcome of all verification steps for one scenario."""

    steps: dict[str, VerifyResult] = Field(default_factory=dict)
    passed: bool
    summary: str = ""


def step_name(step: VerifyStep, index: int) -> str:
    """Name of a step, or ``step-N`` (1-based) when it has none."""
    return step.name or f"step-{index + 1}"


def escape_js(text: str) -> str:
    """Escape text for a single-quoted JavaScript string literal."""
    return (
        text.replace("\\", "\\\\")
        .replace("'", "\\'")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )


def resolve_url(url: str, endpoint: str) -> str:
    if not url:
        return endpoint
    return url.replace(ENDPOINT_PLACEHOLDER, endpoint.rstrip("/"))


def discover_endpoint(env_text: str) -> str:
    """Find the deployed app URL in ``KEY=VALUE`` environment output.

    Keys are tried in priority order; surrounding quotes are stripped.
    Returns an empty string when none is set.
    """
    values: dict[str, str] = {}
    for line in env_text.splitlines():
        key, sep, value = line.strip().partition("=")
        if sep:
            values.setdefault(key.strip(), value.strip().strip("\"' "))
    for key in ENDPOINT_KEYS:
        if values.get(key):
            return values[key]
    return ""


async def read_env_values(work_dir: Path, binary: str = "azd") -> str:
    """Return ``azd env get-values`` output for a project, or '' on failure."""
    try:
        process = await asyncio.create_subprocess_exec(
            binary,
            "env",
            "get-values",
            cwd=work_dir,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as e:
        logger.warning("Cannot read environment values: %s", e)
        return ""
    stdout, _ = await process.communicate()
    if process.returncode != 0:
        logger.debug("%s env get-values exited with %d", binary, process.returncode)
        return ""
    return stdout.decode("utf-8", errors="replace")


def _step_body(step: VerifyStep, endpoint: str) -> list[str]:
    selector = escape_js(step.selector)
    value = escape_js(step.value)
    match step.action:
        case "navigate":
            lines = [f"const response = await page.goto('{escape_js(resolve_url(step.url, endpoint))}');"]
            if step.status_code > 0:
                lines.append(f"expect(response.status()).toBe({step.status_code});")
            else:
                lines.append("expect(response.status()).toBeLessThan(400);")
            if step.value:
                lines.append(f"await expect(page.locator('body')).toContainText('{value}');")
            return lines
        case "click":
            return [f"await page.locator('{selector}').click();"]
        case "type":
            return [f"await page.locator('{selector}').fill('{value}');"]
        case "wait":
            if step.selector:
                return [f"await page.waitForSelector('{selector}', {{ timeout: 10000 }});"]
            return ["await page.waitForTimeout(2000);"]
        case "check":
            if not step.selector:
                return []
            lines = [f"await expect(page.locator('{selector}')).toBeVisible();"]
            if step.value:
                lines.append(f"await expect(page.locator('{selector}')).toContainText('{value}');")
            return lines
        case "check_not_empty":
            return [
                f"const count = await page.locator('{selector}').count();",
                "expect(count).toBeGreaterThan(0);",
            ]
        case "screenshot":
            return ["await page.screenshot({ path: 'verification.png', fullPage: true });"]
    return []


def generate_playwright_test(scenario: Scenario, endpoint: str) -> str:
    """Render a scenario's verification steps as a Playwright spec.

    Steps run serially in one describe block, one test per step.
    """
    out = [
        "import { test, expect } from '@playwright/test';",
        "",
        f"const ENDPOINT = '{escape_js(endpoint)}';",
        "",
        "test.describe.configure({ mode: 'serial' });",
        "",
        f"test.describe('{escape_js(scenario.name)} verification', () => {{",
    ]
    for idx, step in enumerate(scenario.verification):
        out.append(f"  test('{escape_js(step_name(step, idx))}', async ({{ page }}) => {{")
        out.extend(f"    {line}" for line in _step_body(step, endpoint))
        out.append("  });")
        out.append("")
    out.append("});")
    return "\n".join(out) + "\n"


def parse_verification_output(
    scenario: Scenario,
    output: str,
    exit_ok: bool,
) -> VerificationResult:
    """Map Playwright list-reporter output back onto scenario steps.

    A step is decided by the line whose last title segment is exactly its
    name: failed under a failure marker, passed under a pass marker.
    Steps with no such line take the overall exit status.
    """
    steps: dict[str, VerifyResult] = {}
    for idx, step in enumerate(scenario.verification):
        name = step_name(step, idx)
        pattern = re.compile(
            rf"(?P<mark>[{_PASS_MARKS}{_FAIL_MARKS}])[^\n]*?›[ \t]+{re.escape(name)}"
            r"(?P<rest>[ \t]+\([^\n]*)?[ \t]*$",
            re.MULTILINE,
        )
        passed = exit_ok
        error = ""
        for match in pattern.finditer(output):
            if match.group("mark") in _FAIL_MARKS:
                passed = False
                error = f"failed {(match.group('rest') or '').strip()}".strip()
                break
            passed = True
        if not passed and not error and not exit_ok:
            error = "verification run failed"
        steps[name] = VerifyResult(passed=passed, error=error)

    pass_count = sum(1 for r in steps.values() if r.passed)
    return VerificationResult(
        steps=steps,
        passed=pass_count == len(steps),
        summary=f"{pass_count}/{len(steps)} verification steps passed",
    )


async def run_verification(
    scenario: Scenario,
    work_dir: Path | None = None,
    endpoint: str = "",
    timeout: float = VERIFY_TIMEOUT_SECONDS,
    azd_binary: str = "azd",
) -> VerificationResult:
    """Run a scenario's verification steps against its deployed endpoint.

    Args:
        scenario: Scenario whose verification steps to run.
        work_dir: Project directory used to discover the endpoint.
        endpoint: Explicit endpoint URL; skips discovery when set.
        timeout: Ceiling for the whole Playwright invocation, in seconds.
        azd_binary: Binary used for ``env get-values``.
    """
    if not scenario.verification:
        return VerificationResult(passed=True, summary="no verification steps defined")

    if not endpoint and work_dir is not None:
        endpoint = discover_endpoint(await read_env_values(work_dir, azd_binary))
    if not endpoint:
        return VerificationResult(
            passed=False,
            summary="no endpoint URL found; cannot run verification",
            steps={ENDPOINT_DISCOVERY_STEP: VerifyResult(passed=False, error="no endpoint URL")},
        )

    logger.info(
        "Running %d verification steps against %s", len(scenario.verification), endpoint
    )
    test_dir = Path(tempfile.mkdtemp(prefix="scenario-verify-"))
    try:
        test_file = test_dir / "verify.spec.js"
        config_file = test_dir / "playwright.config.js"
        test_file.write_text(generate_playwright_test(scenario, endpoint), encoding="utf-8")
        config_file.write_text(PLAYWRIGHT_CONFIG, encoding="utf-8")
        output, exit_ok = await _run_playwright(test_dir, config_file, test_file, timeout)
    finally:
        shutil.rmtree(test_dir, ignore_errors=True)

    logger.debug("Playwright output:\n%s", output)
    return parse_verification_output(scenario, output, exit_ok)


async def _run_playwright(
    test_dir: Path,
    config_file: Path,
    test_file: Path,
    timeout: float,
) -> tuple[str, bool]:
    try:
        process = await asyncio.create_subprocess_exec(
            "npx",
            "playwright",
            "test",
            "--config",
            str(config_file),
            str(test_file),
            cwd=test_dir,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except OSError as e:
        return f"cannot start playwright: {e}", False
    try:
        stdout, _ = await asyncio.wait_for(process.communicate(), timeout)
    except TimeoutError:
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()
        return f"playwright timed out after {timeout:g}s", False
    return stdout.decode("utf-8", errors="replace"), process.returncode == 0


def verify_scenario(
    scenario: Scenario,
    work_dir: Path | None = None,
    endpoint: str = "",
    timeout: float = VERIFY_TIMEOUT_SECONDS,
) -> VerificationResult:
    """Synchronous wrapper around run_verification."""
    return asyncio.run(run_verification(scenario, work_dir, endpoint, timeout))


def attach_verification(run: Run, result: VerificationResult) -> Run:
    """Return a copy of run carrying the verification step results."""
    return run.model_copy(update={"verification": dict(result.steps)})
