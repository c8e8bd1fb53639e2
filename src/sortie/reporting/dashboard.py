"""Self-contained HTML dashboard of stored runs.

The page embeds every run (with details) as JSON and renders a summary,
a per-scenario score trend chart and a run table client-side.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from string import Template

from sortie.models.result import Run
from sortie.storage.sqlite_store import ResultsStore

logger = logging.getLogger(__name__)

DASHBOARD_TEMPLATE = Template("""\
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>Scenario Dashboard</title>
<script src="https://cdn.jsdelivr.net/npm/chart.js@4"></script>
<style>
  :root { --bg: #0d1117; --surface: #161b22; --border: #30363d; --text: #e6edf3;
    --dim: #8b949e; --green: #3fb950; --red: #f85149; --accent: #58a6ff; }
  body { font-family: -apple-system, 'Segoe UI', Helvetica, Arial, sans-serif;
    background: var(--bg); color: var(--text); margin: 0; padding: 24px; }
  .subtitle { color: var(--dim); font-size: 14px; margin-bottom: 24px; }
  .summary { display: grid; grid-template-columns: repeat(auto-fit, minmax(160px, 1fr));
    gap: 16px; margin-bottom: 24px; }
  .card { background: var(--surface); border: 1px solid var(--border); border-radius: 8px; padding: 16px; }
  .card-value { font-size: 32px; font-weight: 700; }
  .card-label { color: var(--dim); font-size: 12px; text-transform: uppercase; }
  table { width: 100%; border-collapse: collapse; font-size: 14px; margin-top: 24px; }
  th { text-align: left; padding: 8px; border-bottom: 2px solid var(--border); color: var(--dim); }
  td { padding: 8px; border-bottom: 1px solid var(--border); }
  .pass { color: var(--green); } .fail { color: var(--red); }
  .mono { font-family: 'SF Mono', 'Fira Code', monospace; font-size: 12px; }
</style>
</head>
<body>
<h1>Scenario Dashboard</h1>
<div class="subtitle">Generated $generated_at from $run_count run(s)</div>
<div class="summary" id="summary"></div>
<div class="card"><canvas id="trend" height="90"></canvas></div>
<table>
  <thead><tr><th>Date</th><th>Scenario</th><th>Status</th><th>Score</th><th>Turns</th>
    <th>azd up</th><th>Bicep edits</th><th>Duration</th><th>Commit</th></tr></thead>
  <tbody id="runs"></tbody>
</table>
<script>
const RUNS = $runs_json;

function fmtDuration(sec) {
  const m = Math.floor(sec / 60), s = sec % 60;
  return m > 0 ? m + 'm ' + s + 's' : s + 's';
}

const passed = RUNS.filter(r => r.passed).length;
const avg = RUNS.length ? RUNS.reduce((a, r) => a + r.score, 0) / RUNS.length : 0;
const scenarios = [...new Set(RUNS.map(r => r.scenario))];
const cards = [
  ['Runs', RUNS.length, ''],
  ['Scenarios', scenarios.length, ''],
  ['Passed', passed, 'pass'],
  ['Failed', RUNS.length - passed, 'fail'],
  ['Avg score', Math.round(avg * 100) + '%', ''],
];
document.getElementById('summary').innerHTML = cards.map(([label, value, cls]) =>
  '<div class="card"><div class="card-value ' + cls + '">' + value + '</div>' +
  '<div class="card-label">' + label + '</div></div>').join('');

const tbody = document.getElementById('runs');
for (const r of [...RUNS].reverse()) {
  const tr = document.createElement('tr');
  const cells = [
    r.started_at.slice(0, 16).replace('T', ' '), r.scenario,
    r.passed ? 'PASS' : 'FAIL', Math.round(r.score * 100) + '%', r.total_turns,
    r.azd_up_attempts, r.bicep_edits, fmtDuration(r.duration_sec), r.git_commit || '',
  ];
  cells.forEach((value, i) => {
    const td = document.createElement('td');
    td.textContent = value;
    if (i === 2) td.className = r.passed ? 'pass' : 'fail';
    if (i === 8) td.className = 'mono';
    tr.appendChild(td);
  });
  tbody.appendChild(tr);
}

if (window.Chart) {
  new Chart(document.getElementById('trend'), {
    type: 'line',
    data: {
      datasets: scenarios.map(name => ({
        label: name,
        data: RUNS.filter(r => r.scenario === name)
          .map((r, i) => ({ x: i + 1, y: Math.round(r.score * 100) })),
      })),
    },
    options: { scales: { x: { type: 'linear', title: { display: true, text: 'Run' } },
      y: { min: 0, max: 100, title: { display: true, text: 'Score %' } } } },
  });
}
</script>
</body>
</html>
""")


def render_dashboard(runs: list[Run], generated_at: datetime | None = None) -> str:
    """Render runs (oldest first) into the dashboard HTML."""
    generated_at = generated_at or datetime.now(timezone.utc)
    payload = json.dumps([run.model_dump(mode="json") for run in runs], ensure_ascii=False)
    # Keep embedded JSON from closing the script element
    payload = payload.replace("</", "<\\/")
    return DASHBOARD_TEMPLATE.substitute(
        generated_at=f"{generated_at:%Y-%m-%d %H:%M} UTC",
        run_count=len(runs),
        runs_json=payload,
    )


def generate_dashboard(store: ResultsStore, out_path: Path | str) -> Path:
    """Write the dashboard for every stored run.

    Returns:
        The path written.
    """
    runs = store.list_runs_with_details()
    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(render_dashboard(runs), encoding="utf-8")
    logger.info("Dashboard with %d runs written to %s", len(runs), out)
    return out
