import importlib.util
import json
import os

import pytest

from tests.test_app import FakeDeskClient
from zoho_desk import UpstreamError

SCRIPT = os.path.join(os.path.dirname(__file__), "..", "scripts", "generate_counts.py")


@pytest.fixture(scope="module")
def generate_counts():
    spec = importlib.util.spec_from_file_location("generate_counts", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_writes_snapshot(generate_counts, tmp_path):
    output = tmp_path / "counts.json"
    desk = FakeDeskClient(
        users=[{"id": "u1", "fullName": "Ana Reis"}],
        tickets=[
            {"id": 1, "assigneeId": "u1", "status": "In Progress"},
            {"id": 2, "assigneeId": "", "status": "Open"},
        ],
    )

    code = generate_counts.main(["--department-id", "dep-1", "--output", str(output)], client=desk)

    assert code == 0
    data = json.loads(output.read_text(encoding="utf-8"))
    assert data["members"][0]["tickets"]["inProgress"] == 1
    assert data["members"][-1]["tickets"]["unassigned"] == 1
    assert data["unassignedTicketNumbers"] == [2]
    assert desk.ticket_filters == [("dep-1", None)]


def test_failure_exits_non_zero(generate_counts, tmp_path):
    output = tmp_path / "counts.json"
    desk = FakeDeskClient(error=UpstreamError("down", status_code=502))

    assert generate_counts.main(["--output", str(output)], client=desk) == 1
    assert not output.exists()
