import json

import pytest

from app.ops import integrity_scan
from app.ops.integrity_scan import main, run_scan


def _database_url(db_session) -> str:
    return db_session.get_bind().url.render_as_string(hide_password=False)


def test_integrity_scan_no_findings(db_session, make_stock, capsys):
    make_stock()

    exit_code = run_scan("json", False, database_url=_database_url(db_session))
    payload = json.loads(capsys.readouterr().out)

    assert exit_code == 0
    assert payload["summary"] == {"total": 0, "critical": 0, "warn": 0, "by_check": {}}
    assert payload["findings"] == []


def test_integrity_scan_critical_exit(db_session, make_stock, capsys):
    make_stock(weight="-5.00", bags=1)

    exit_code = run_scan("json", True, database_url=_database_url(db_session))
    payload = json.loads(capsys.readouterr().out)

    assert exit_code == 1
    assert payload["summary"]["by_check"] == {"negative_inventory": 1}
    assert payload["findings"][0]["check_id"] == "negative_inventory"
    assert payload["findings"][0]["severity"] == "CRITICAL"


def test_integrity_scan_text_output(db_session, make_stock, capsys):
    make_stock(weight="3.00", bags=0)

    exit_code = run_scan("text", True, database_url=_database_url(db_session))
    output = capsys.readouterr().out

    assert exit_code == 0
    assert output.startswith("Ledger Integrity Scan")
    assert "critical=0 warn=1" in output
    assert "  zero_bags_positive_weight: 1" in output
    assert "[WARN] zero_bags_positive_weight stocks#" in output


def test_integrity_scan_selected_checks_only(db_session, make_stock, capsys):
    make_stock(weight="-5.00", bags=1)
    make_stock(weight="3.00", bags=0)

    exit_code = run_scan(
        "json",
        True,
        database_url=_database_url(db_session),
        check_ids=["zero_bags_positive_weight"],
    )
    payload = json.loads(capsys.readouterr().out)

    assert exit_code == 0
    assert payload["summary"]["by_check"] == {"zero_bags_positive_weight": 1}


def test_integrity_scan_rejects_unknown_check(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--check", "not_a_check"])

    assert excinfo.value.code == 2
    assert "invalid choice" in capsys.readouterr().err


def test_integrity_scan_disabled(monkeypatch, capsys):
    monkeypatch.setattr(integrity_scan.settings, "OPS_ENABLE_INTEGRITY_SCAN", False)

    assert run_scan("json", True) == 2
    assert "disabled" in capsys.readouterr().err
