import pytest

from app import app
from expenses import add_expense
from groups import create_group
from members import add_member


@pytest.fixture
def client(fake_db):
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture
def group_id(client):
    group = create_group("Lake House", currency="USD")
    add_member(group.group_id, "Asha", member_id="u1")
    add_member(group.group_id, "Ben", member_id="u2")
    add_expense(group.group_id, "Cabin", 1200, "u1", "accommodation", ["u1", "u2"], date="2024-07-01")
    add_expense(group.group_id, "Groceries", 80, "u2", "food", ["u1", "u2"], date="2024-07-02")
    return group.group_id


def test_summary_page(client, group_id):
    response = client.get(f"/groups/{group_id}")

    assert response.status_code == 200
    page = response.get_data(as_text=True)
    assert "Lake House" in page
    assert "gets back USD 560.00" in page
    assert "owes USD 560.00" in page
    assert "USD 1,280.00" in page
    assert "export-pdf" in page


def test_summary_page_unknown_group(client):
    assert client.get("/groups/group_missing").status_code == 404


def test_export_pdf(client, group_id):
    response = client.get(f"/groups/{group_id}/export-pdf")

    assert response.status_code == 200
    assert response.headers["Content-Type"] == "application/pdf"
    assert "Lake_House_report.pdf" in response.headers["Content-Disposition"]
    assert response.data.startswith(b"%PDF")


def test_unbalanced_group(client, group_id, fake_db):
    fake_db.store.pop(("groups", group_id, "shares", "E001-u2"))

    assert client.get(f"/groups/{group_id}").status_code == 409


def test_export_pdf_with_non_latin_group_name(client):
    group = create_group("Tōkyō Trip", currency="JPY")
    add_member(group.group_id, "Asha", member_id="u1")
    add_expense(group.group_id, "Ramen", 2400, "u1", "food", ["u1"], date="2024-07-01")

    response = client.get(f"/groups/{group.group_id}/export-pdf")

    assert response.status_code == 200
    disposition = response.headers["Content-Disposition"]
    assert disposition.startswith("attachment;")
    assert "filename*=UTF-8''" in disposition
    assert response.data.startswith(b"%PDF")
