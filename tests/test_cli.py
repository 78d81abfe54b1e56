# ruff: noqa: E501
from __future__ import annotations

import json
import os
import sys
import textwrap
from pathlib import Path

from typer.testing import CliRunner

from bankfeed.cli import app

runner = CliRunner()

PACKAGES_DIR = Path(__file__).resolve().parents[1] / "packages"

DBS_EXPORT = textwrap.dedent(
    """\
    Account Details For:,POSB Savings 123
    Transaction Date,Reference,Debit Amount,Credit Amount,Transaction Ref1,Transaction Ref2,Transaction Ref3
    04 Apr 2024,POS,12.30,,NETS QR,,
    02 Apr 2024,ITR,,1500.00,SALARY,,
    """
)

CITI_EXPORT = (
    '<table><tbody><tr class="xxxxxxxxxxxx1234">'
    '<td class="cT-bodyTableColumn1">03/04/2024</td><td class="cT-bodyTableColumn2">AMAZON</td>'
    '<td class="cT-bodyTableColumn3">SGD 20.00</td><td class="cT-bodyTableColumn4"></td>'
    "</tr></tbody></table>"
)


def test_parse_dbs_prints_combined_rows(tmp_path):
    export = tmp_path / "posb.csv"
    export.write_text(DBS_EXPORT, encoding="utf-8")

    result = runner.invoke(app, ["parse", "--kind", "dbs", "--file", str(export)])

    assert result.exit_code == 0, result.output
    assert result.stdout.splitlines() == [
        "2024-04-04,POS NETS QR,12.30,POSB Savings 123,cleared",
        "2024-04-02,SALARY,-1500.00,POSB Savings 123,cleared",
    ]


def test_parse_citi_writes_csv_out(tmp_path):
    export = tmp_path / "posted.html"
    export.write_text(CITI_EXPORT, encoding="utf-8")
    csv_out = tmp_path / "posted.csv"

    result = runner.invoke(
        app, ["parse", "--kind", "citi", "--file", str(export), "--csv-out", str(csv_out)]
    )

    assert result.exit_code == 0, result.output
    assert "2024-04-03,AMAZON,20.00,Citi 1234,cleared" in result.stdout
    assert csv_out.read_bytes().decode("utf-8") == "03/04/2024,AMAZON,-20.00,,xxxxxxxxxxxx1234\r\n"


def test_parse_rejects_unknown_kind_and_bad_exports(tmp_path):
    export = tmp_path / "export.csv"
    export.write_text("hello\n", encoding="utf-8")

    unknown = runner.invoke(app, ["parse", "--kind", "ocbc", "--file", str(export)])
    assert unknown.exit_code == 1
    assert "unknown source kind" in unknown.output

    bad = runner.invoke(app, ["parse", "--kind", "dbs", "--file", str(export)])
    assert bad.exit_code == 1
    assert "failed to parse" in bad.output


def _write_config(tmp_path: Path, ledger: str = "") -> Path:
    inbox = tmp_path / "inbox" / "dbs"
    inbox.mkdir(parents=True)
    (inbox / "posb.csv").write_text(DBS_EXPORT, encoding="utf-8")
    config = tmp_path / "bankfeed.toml"
    config.write_text(
        textwrap.dedent(
            """\
            output_path = "out"
            inbox_root = "inbox"

            [[sources]]
            kind = "dbs"
            key = "dbs"
            """
        )
        + ledger,
        encoding="utf-8",
    )
    return config


def test_pull_writes_run_directory(tmp_path):
    config = _write_config(tmp_path)

    result = runner.invoke(app, ["pull", "--config", str(config)])

    assert result.exit_code == 0, result.output
    assert "2 transaction(s)" in result.output
    (run,) = (tmp_path / "out").iterdir()
    assert sorted(p.name for p in run.iterdir()) == ["dbs", "output.json", "transactions.csv"]


def test_pull_reports_bad_configuration(tmp_path):
    config = tmp_path / "bankfeed.toml"
    config.write_text('[[sources]]\nkind = "ocbc"\nkey = "x"\n', encoding="utf-8")

    result = runner.invoke(app, ["pull", "--config", str(config)])

    assert result.exit_code == 1
    assert "Error: invalid configuration" in result.output


def test_pull_exits_nonzero_on_document_failure(tmp_path):
    config = _write_config(tmp_path)
    (tmp_path / "inbox" / "dbs" / "broken.csv").write_text("nope\n", encoding="utf-8")

    result = runner.invoke(app, ["pull", "--config", str(config)])

    assert result.exit_code == 1
    assert "Error: dbs/broken.csv" in result.output


WORKER = textwrap.dedent(
    """
    from bankfeed.ledger.models import ImportResult, LedgerAccount
    from bankfeed.ledger.worker import serve


    class Backend:
        def init(self, params):
            pass

        def get_accounts(self):
            return [LedgerAccount(id="s", name="Savings")]

        def import_transactions(self, account_id, transactions):
            return ImportResult(added=[str(t.amount) for t in transactions])

        def shutdown(self):
            pass


    serve(Backend())
    """
)


def test_sync_replays_snapshot(tmp_path, monkeypatch):
    script = tmp_path / "worker.py"
    script.write_text(WORKER, encoding="utf-8")
    monkeypatch.setenv("PYTHONPATH", str(PACKAGES_DIR))
    ledger = textwrap.dedent(
        f"""
        [ledger]
        data_dir = "ledger"
        server_url = "http://localhost:5006"
        sync_id = "budget"
        command = [{json.dumps(sys.executable)}, {json.dumps(os.fspath(script))}]

        [ledger.account_mapping]
        "POSB Savings 123" = "Savings"
        """
    )
    config = _write_config(tmp_path, ledger)
    snapshot = tmp_path / "output.json"
    snapshot.write_text(
        json.dumps(
            {
                "transactions": [
                    {
                        "account": "POSB Savings 123",
                        "date": "2024-04-02",
                        "description": "SALARY",
                        "absolute_amount": 1500.0,
                        "is_debit": False,
                        "is_pending": False,
                    }
                ]
            }
        ),
        encoding="utf-8",
    )

    result = runner.invoke(app, ["sync", "--config", str(config), "--snapshot", str(snapshot)])

    assert result.exit_code == 0, result.output
    assert "synced POSB Savings 123 -> Savings: 1 transaction(s)" in result.output


def test_sync_reports_missing_destination(tmp_path, monkeypatch):
    script = tmp_path / "worker.py"
    script.write_text(WORKER, encoding="utf-8")
    monkeypatch.setenv("PYTHONPATH", str(PACKAGES_DIR))
    ledger = textwrap.dedent(
        f"""
        [ledger]
        data_dir = "ledger"
        server_url = "http://localhost:5006"
        sync_id = "budget"
        command = [{json.dumps(sys.executable)}, {json.dumps(os.fspath(script))}]

        [ledger.account_mapping]
        "Citi 1234" = "Rewards"
        """
    )
    config = _write_config(tmp_path, ledger)
    snapshot = tmp_path / "output.json"
    snapshot.write_text('{"transactions": []}', encoding="utf-8")

    result = runner.invoke(app, ["sync", "--config", str(config), "--snapshot", str(snapshot)])

    assert result.exit_code == 1
    assert 'Destination account "Rewards" does not exist.' in result.output


def test_parse_reports_non_utf8_export(tmp_path):
    export = tmp_path / "posb.csv"
    export.write_bytes(DBS_EXPORT.replace("NETS QR", "CAFÉ").encode("latin-1"))

    result = runner.invoke(app, ["parse", "--kind", "dbs", "--file", str(export)])

    assert result.exit_code == 1
    assert "not UTF-8" in result.output
