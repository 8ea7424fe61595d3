from __future__ import annotations

from pathlib import Path
import subprocess
import sys

from app.core.extensions import db
from app.core.models import AuthIdentity, Caso, Corresponsal


def test_navigation_main_menu_routes_no_404(app, client, login_admin):
    login_admin()
    with app.app_context():
        caso_id = Caso.query.order_by(Caso.id.asc()).first().id
        corresponsal_id = Corresponsal.query.order_by(Corresponsal.id.asc()).first().id
    paths = [
        "/",
        "/dashboard",
        "/casos",
        "/casos/nuevo",
        f"/casos/{caso_id}",
        f"/casos/{caso_id}/editar",
        "/corresponsales",
        "/corresponsales/nuevo",
        f"/corresponsales/{corresponsal_id}/editar",
    ]
    for path in paths:
        response = client.get(path, follow_redirects=True)
        assert response.status_code == 200, path


def test_menu_links_for_admin(client, login_admin):
    login_admin()
    html = client.get("/dashboard").data
    start = html.find(b'<nav class="menu">')
    end = html.find(b"</nav>", start)
    assert start != -1
    menu = html[start:end]

    expected_hrefs = [
        b'href="/dashboard"',
        b'href="/casos"',
        b'href="/casos/nuevo"',
        b'href="/corresponsales"',
    ]
    positions = [menu.find(href) for href in expected_hrefs]
    assert all(pos != -1 for pos in positions)
    assert positions == sorted(positions)


def test_ui_audit_script_passes():
    repo_root = Path(__file__).resolve().parents[1]
    cmd = [sys.executable, "scripts/dev_ui_audit.py"]
    result = subprocess.run(cmd, cwd=repo_root, check=False, capture_output=True, text=True)
    assert result.returncode == 0, result.stdout + result.stderr
    assert "UI audit passed" in result.stdout


def test_seed_demo_command_skips_when_data_exists(app):
    result = app.test_cli_runner().invoke(args=["seed-demo"])
    assert result.exit_code == 0
    assert "Seed skipped" in result.output


def test_seed_demo_command_reset_reseeds(app):
    result = app.test_cli_runner().invoke(args=["seed-demo", "--reset"])
    assert result.exit_code == 0, result.output
    assert "Demo data seeded." in result.output
    with app.app_context():
        assert AuthIdentity.query.count() == 2
        assert Corresponsal.query.count() == 3
        assert db.session.query(Caso).count() == 4
