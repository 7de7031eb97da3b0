"""HTML report generator: produces a self-contained HTML report with embedded diff artifacts."""

from __future__ import annotations

import base64
import html
import logging
from pathlib import Path

from src.models.test_result import RunResult, VisualTestResult

from .explanation_table import to_html_table

logger = logging.getLogger(__name__)

_BORDER_COLORS = {"pass": "#22c55e", "skip": "#ef4444", "baseline": "#6366f1", "error": "#f97316"}


def _embed_image(path: str) -> str:
    """Read an image file and return a base64 data URI, or empty string on failure."""
    try:
        p = Path(path)
        if not p.exists() or p.stat().st_size == 0:
            return ""
        with open(p, "rb") as f:
            data = base64.b64encode(f.read()).decode()
        suffix = p.suffix.lower()
        mime = "image/png" if suffix == ".png" else "image/jpeg" if suffix in (".jpg", ".jpeg") else "image/webp"
        return f"data:{mime};base64,{data}"
    except OSError as e:
        logger.debug("Could not embed image %s: %s", path, e)
        return ""


def _screenshot_item(path: str, label: str) -> str:
    data_uri = _embed_image(path) if path else ""
    if not data_uri:
        return ""
    return f'''
    <div class="screenshot-item">
      <img src="{data_uri}" alt="{html.escape(label)}" loading="lazy" onclick="this.classList.toggle('zoomed')"/>
      <div class="screenshot-label">{html.escape(label)}</div>
    </div>'''


def _build_test_card(r: VisualTestResult) -> str:
    """Build a detailed HTML card for a single target result."""
    border_color = _BORDER_COLORS.get(r.result, "#94a3b8")
    mismatch = f"{r.mismatch_percent:.2f}% mismatch" if r.mismatch_percent is not None else "no comparison"

    card = f'''
    <div class="test-card">
      <div class="test-header" style="border-left: 4px solid {border_color};" onclick="this.parentElement.classList.toggle('expanded')">
        <div class="test-header-left">
          <span class="badge {r.result}">{r.result.upper()}</span>
          <strong>{html.escape(r.test_name)}</strong>
          <span class="badge device">{html.escape(r.device)}</span>
          <span class="test-meta">{mismatch} &middot; {r.duration_seconds:.1f}s</span>
        </div>
        <span class="expand-arrow">&#9660;</span>
      </div>
      <div class="test-body">
    '''

    target = html.escape(r.url)
    if r.selector:
        target += f' &middot; element <code>{html.escape(r.selector)}</code>'
    card += f'<div class="test-description">{target}</div>'

    if r.failure_reason:
        card += f'<div class="failure-banner"><strong>Failure:</strong> {html.escape(r.failure_reason)}</div>'

    if not r.comparison_available:
        card += ('<div class="notice-banner">Pixel counts were unavailable for this comparison; '
                 'the reported mismatch of 0% is not evidence of a match.</div>')

    if r.readiness is not None:
        signals = ", ".join(
            f"{html.escape(name)}: {'settled' if ok else 'unsettled'}"
            for name, ok in r.readiness.signals.items()
        )
        card += (f'<div class="section"><h4>Page Readiness</h4>'
                 f'<div class="readiness">{html.escape(r.readiness.reason)} '
                 f'({r.readiness.elapsed_ms}ms)<br><span class="test-meta">{signals}</span></div></div>')

    if r.explanation is not None:
        card += f'<div class="section"><h4>AI Change Explanation</h4>{to_html_table(r.explanation)}</div>'

    if r.text_differences:
        card += '<div class="section"><h4>Text Differences (OCR)</h4><pre class="console-log">'
        for d in r.text_differences[:50]:
            current = d.current_line if d.current_line is not None else "Missing line"
            card += html.escape(f"Line {d.line_index + 1}: {d.baseline_line!r} -> {current!r}") + "\n"
        card += '</pre></div>'

    if r.diff_path:
        diff_html = _screenshot_item(r.diff_path, "current | baseline | diff")
        if diff_html:
            card += f'<div class="section"><h4>Diff</h4><div class="diff-artifact">{diff_html}</div></div>'
    else:
        grid = _screenshot_item(r.current_path, "current") + _screenshot_item(r.baseline_path, "baseline")
        if grid:
            card += f'<div class="section"><h4>Screenshots</h4><div class="screenshots-grid">{grid}</div></div>'

    if r.image_url:
        url = html.escape(r.image_url)
        card += f'<div class="section"><h4>Uploaded Image</h4><a href="{url}">{url}</a></div>'

    card += '</div></div>'  # close test-body and test-card
    return card


def generate_html_report(run_result: RunResult, output_path: Path) -> None:
    """Generate a self-contained HTML report with detailed target cards."""
    test_cards = [_build_test_card(r) for r in run_result.test_results]
    context = "CI" if run_result.ci else "Local"

    report_html = f'''<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Visual Regression Report &mdash; {html.escape(run_result.run_id)}</title>
<style>
  :root {{ --pass: #22c55e; --fail: #ef4444; --skip: #eab308; --error: #f97316; --bg: #f8fafc; --card: white; --border: #e2e8f0; --text: #1e293b; --muted: #64748b; --accent: #6366f1; }}
  * {{ margin: 0; padding: 0; box-sizing: border-box; }}
  body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background: var(--bg); color: var(--text); line-height: 1.6; padding: 1.5rem; }}
  .container {{ max-width: 1400px; margin: 0 auto; }}
  h1 {{ font-size: 1.8rem; margin-bottom: 0.3rem; }}
  .meta {{ color: var(--muted); margin-bottom: 1.5rem; font-size: 0.9rem; }}
  .summary {{ display: grid; grid-template-columns: repeat(auto-fit, minmax(130px, 1fr)); gap: 0.8rem; margin-bottom: 1.5rem; }}
  .stat {{ background: var(--card); border-radius: 8px; padding: 1rem; box-shadow: 0 1px 3px rgba(0,0,0,0.08); text-align: center; }}
  .stat .value {{ font-size: 1.8rem; font-weight: 700; }}
  .stat .label {{ font-size: 0.8rem; color: var(--muted); }}
  .stat.pass .value {{ color: var(--pass); }}
  .stat.skip .value {{ color: var(--fail); }}
  .stat.baseline .value {{ color: var(--accent); }}
  .stat.error .value {{ color: var(--error); }}
  .badge {{ display: inline-block; padding: 0.15rem 0.55rem; border-radius: 9999px; font-size: 0.7rem; font-weight: 600; text-transform: uppercase; white-space: nowrap; }}
  .badge.pass {{ background: #dcfce7; color: #166534; }}
  .badge.skip {{ background: #fecaca; color: #991b1b; }}
  .badge.baseline {{ background: #e0e7ff; color: #3730a3; }}
  .badge.error {{ background: #fed7aa; color: #9a3412; }}
  .badge.device {{ background: #f1f5f9; color: #475569; }}
  .test-card {{ background: var(--card); border-radius: 8px; margin-bottom: 0.6rem; box-shadow: 0 1px 3px rgba(0,0,0,0.08); overflow: hidden; }}
  .test-header {{ display: flex; justify-content: space-between; align-items: center; padding: 0.7rem 1rem; cursor: pointer; user-select: none; }}
  .test-header:hover {{ background: #f8fafc; }}
  .test-header-left {{ display: flex; align-items: center; gap: 0.5rem; flex-wrap: wrap; }}
  .test-meta {{ font-size: 0.78rem; color: var(--muted); }}
  .expand-arrow {{ color: var(--muted); font-size: 0.7rem; transition: transform 0.2s; }}
  .test-card.expanded .expand-arrow {{ transform: rotate(180deg); }}
  .test-body {{ display: none; padding: 0 1rem 1rem 1rem; }}
  .test-card.expanded .test-body {{ display: block; }}
  .test-description {{ color: var(--muted); font-size: 0.88rem; margin-bottom: 0.8rem; padding: 0.5rem; background: #f1f5f9; border-radius: 4px; }}
  .failure-banner {{ background: #fef2f2; border: 1px solid #fecaca; color: #991b1b; border-radius: 6px; padding: 0.6rem 0.8rem; margin-bottom: 0.8rem; font-size: 0.88rem; }}
  .notice-banner {{ background: #fefce8; border: 1px solid #fde68a; color: #92400e; border-radius: 6px; padding: 0.6rem 0.8rem; margin-bottom: 0.8rem; font-size: 0.88rem; }}
  .section {{ margin-bottom: 1rem; }}
  .section h4 {{ font-size: 0.85rem; color: var(--muted); text-transform: uppercase; letter-spacing: 0.05em; margin-bottom: 0.4rem; padding-bottom: 0.25rem; border-bottom: 1px solid var(--border); }}
  .readiness {{ font-size: 0.85rem; }}
  table.explanation {{ width: 100%; border-collapse: collapse; font-size: 0.85rem; }}
  table.explanation th, table.explanation td {{ border: 1px solid var(--border); padding: 0.35rem 0.5rem; text-align: left; vertical-align: top; }}
  table.explanation th {{ background: #f1f5f9; }}
  .explanation-text {{ font-size: 0.85rem; white-space: pre-wrap; }}
  .screenshots-grid {{ display: grid; grid-template-columns: repeat(auto-fill, minmax(300px, 1fr)); gap: 0.6rem; }}
  .screenshot-item {{ text-align: center; }}
  .screenshot-item img {{ width: 100%; border-radius: 6px; border: 1px solid var(--border); cursor: pointer; }}
  .screenshot-item img.zoomed {{ position: fixed; top: 5%; left: 5%; width: 90%; height: 90%; object-fit: contain; z-index: 1000; background: rgba(0,0,0,0.85); border: none; border-radius: 8px; padding: 1rem; }}
  .screenshot-label {{ font-size: 0.75rem; color: var(--muted); margin-top: 0.2rem; }}
  .console-log {{ background: #1e293b; color: #f1f5f9; padding: 0.8rem; border-radius: 6px; font-size: 0.78rem; overflow-x: auto; max-height: 200px; overflow-y: auto; }}
  .filter-bar {{ display: flex; gap: 0.5rem; margin-bottom: 1rem; flex-wrap: wrap; }}
  .filter-btn {{ padding: 0.3rem 0.8rem; border-radius: 6px; border: 1px solid var(--border); background: var(--card); cursor: pointer; font-size: 0.82rem; }}
  .filter-btn.active {{ background: var(--accent); color: white; border-color: var(--accent); }}
</style>
</head>
<body>
<div class="container">
  <h1>Visual Regression Report</h1>
  <p class="meta">Run: {html.escape(run_result.run_id)} &middot; Mode: {html.escape(run_result.mode)} &middot; Device: {html.escape(run_result.device)} &middot; {context} &middot; {html.escape(run_result.started_at)} &middot; Duration: {run_result.duration_seconds}s</p>

  <div class="summary">
    <div class="stat"><div class="value">{run_result.total_tests}</div><div class="label">Total Targets</div></div>
    <div class="stat pass"><div class="value">{run_result.passed}</div><div class="label">Passed</div></div>
    <div class="stat skip"><div class="value">{run_result.skipped}</div><div class="label">Mismatch (skipped)</div></div>
    <div class="stat baseline"><div class="value">{run_result.baselines_created}</div><div class="label">Baselines Created</div></div>
    <div class="stat error"><div class="value">{run_result.errors}</div><div class="label">Errors</div></div>
  </div>

  <div class="filter-bar">
    <button class="filter-btn active" onclick="filterTests('all')">All</button>
    <button class="filter-btn" onclick="filterTests('skip')">Mismatch</button>
    <button class="filter-btn" onclick="filterTests('error')">Errors</button>
    <button class="filter-btn" onclick="filterTests('pass')">Passed</button>
    <button class="filter-btn" onclick="filterTests('baseline')">Baselines</button>
    <button class="filter-btn" onclick="expandAll()">Expand All</button>
    <button class="filter-btn" onclick="collapseAll()">Collapse All</button>
  </div>

  <div id="test-list">
    {"".join(test_cards)}
  </div>
</div>

<script>
function filterTests(status) {{
  document.querySelectorAll('.filter-btn').forEach(b => b.classList.remove('active'));
  event.target.classList.add('active');
  document.querySelectorAll('.test-card').forEach(card => {{
    if (status === 'all') {{ card.style.display = ''; return; }}
    const badge = card.querySelector('.test-header .badge');
    card.style.display = badge && badge.textContent.trim().toLowerCase() === status ? '' : 'none';
  }});
}}
function expandAll() {{
  document.querySelectorAll('.test-card').forEach(c => c.classList.add('expanded'));
}}
function collapseAll() {{
  document.querySelectorAll('.test-card').forEach(c => c.classList.remove('expanded'));
}}
</script>
</body>
</html>'''

    with open(output_path, "w", encoding="utf-8") as f:
        f.write(report_html)
