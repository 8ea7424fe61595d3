from __future__ import annotations

import re
import sys
from dataclasses import dataclass
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app import create_app  # noqa: E402


@dataclass
class AuditIssue:
    code: str
    path: Path
    line: int
    message: str


PATTERN_RULES: tuple[tuple[str, re.Pattern[str], str], ...] = (
    ("UI001", re.compile(r"href\s*=\s*['\"]#['\"]"), 'Dead link href="#"'),
    ("UI002", re.compile(r"<button\b[^>]*\bdisabled\b", re.IGNORECASE), "Disabled action button"),
    (
        "UI003",
        re.compile(r"<(a|button)\b[^>]*>\s*([^<]*(todo|pendiente)[^<]*)\s*</\1>", re.IGNORECASE),
        "CTA text contains TODO/pendiente",
    ),
    (
        "UI006",
        re.compile(r"hx-trigger\s*=\s*['\"](?![^'\"]*delay:)[^'\"]*\bkeyup\b[^'\"]*['\"]", re.IGNORECASE),
        "Keystroke-driven htmx request without debounce delay",
    ),
)
URL_FOR_RE = re.compile(r"url_for\(\s*['\"]([^'\"]+)['\"]")
DATA_ACTION_RE = re.compile(r"data-action\s*=\s*['\"]([^'\"]+)['\"]", re.IGNORECASE)
HX_LITERAL_URL_RE = re.compile(r"hx-(get|post)\s*=\s*['\"](/[^'\"]*)['\"]", re.IGNORECASE)


def line_no(text: str, index: int) -> int:
    return text.count("\n", 0, index) + 1


def discover_template_files() -> list[Path]:
    return sorted((ROOT / "app" / "templates").rglob("*.html"))


def discover_js_files() -> list[Path]:
    return sorted((ROOT / "app" / "static").rglob("*.js"))


def collect_handler_corpus(template_files: list[Path], js_files: list[Path]) -> str:
    chunks: list[str] = []
    script_re = re.compile(r"<script[^>]*>(.*?)</script>", re.IGNORECASE | re.DOTALL)
    for template in template_files:
        chunks.extend(script_re.findall(template.read_text(encoding="utf-8")))
    for js_file in js_files:
        chunks.append(js_file.read_text(encoding="utf-8"))
    return "\n".join(chunks)


def audit_template(template: Path, text: str, valid_endpoints: set[str], handler_corpus: str) -> list[AuditIssue]:
    issues: list[AuditIssue] = []

    for code, pattern, message in PATTERN_RULES:
        for match in pattern.finditer(text):
            issues.append(AuditIssue(code, template, line_no(text, match.start()), message))

    for match in URL_FOR_RE.finditer(text):
        endpoint = match.group(1)
        if endpoint not in valid_endpoints:
            issues.append(
                AuditIssue("UI005", template, line_no(text, match.start()), f"url_for unresolved endpoint: {endpoint}")
            )

    for match in DATA_ACTION_RE.finditer(text):
        action_name = match.group(1)
        if action_name not in handler_corpus:
            issues.append(
                AuditIssue("UI004", template, line_no(text, match.start()), f"data-action without handler: {action_name}")
            )

    for match in HX_LITERAL_URL_RE.finditer(text):
        issues.append(
            AuditIssue("UI007", template, line_no(text, match.start()), f"htmx target hardcoded: {match.group(2)}")
        )

    return issues


def audit_ui() -> list[AuditIssue]:
    template_files = discover_template_files()
    handler_corpus = collect_handler_corpus(template_files, discover_js_files())

    app = create_app()
    valid_endpoints = {rule.endpoint for rule in app.url_map.iter_rules()}

    issues: list[AuditIssue] = []
    for template in template_files:
        text = template.read_text(encoding="utf-8")
        issues.extend(audit_template(template, text, valid_endpoints, handler_corpus))

    issues.sort(key=lambda x: (str(x.path), x.line, x.code))
    return issues


def main() -> int:
    issues = audit_ui()
    if not issues:
        print("UI audit passed: no blocking issues found.")
        return 0

    print("UI audit found issues:")
    for item in issues:
        rel = item.path.relative_to(ROOT)
        print(f"- {item.code} {rel}:{item.line} {item.message}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
