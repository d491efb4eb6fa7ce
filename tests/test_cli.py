import json

import pytest

from allergylog.cli import main


@pytest.fixture
def run(isolated_settings, capsys):
    def _run(*argv):
        code = main(list(argv))
        return code, capsys.readouterr().out
    return _run


def test_add_list_and_stats(run):
    assert run("add", "--food", "banana", "--date", "2024-03-01")[0] == 0
    assert run("add", "--food", "banana", "--date", "2024-03-02", "--symptom", "rash", "--severity", "6")[0] == 0

    code, out = run("list", "--search", "banana")
    assert code == 0
    assert out.count("banana") == 2

    code, out = run("stats", "--month", "2024-03")
    assert code == 0
    assert "banana: 1/2 reactions, 50%, avg 6.0 (rash)" in out


def test_reaction_without_severity_is_refused(run):
    code, out = run("add", "--food", "egg", "--symptom", "hives")
    assert code == 1
    assert out.startswith("✘")


def test_edit_and_delete_by_id(run, isolated_settings):
    run("add", "--food", "egg", "--date", "2024-03-01")
    rec_id = json.loads((isolated_settings.data_root / "daily_records.json").read_text())[0]["id"]

    assert run("edit", rec_id, "--symptom", "hives", "--severity", "3")[0] == 0
    _, out = run("list")
    assert "hives" in out

    assert run("delete", rec_id)[0] == 0
    code, out = run("delete", rec_id)
    assert code == 1
    assert f"Record {rec_id} not found" in out


def test_backup_and_restore(run, isolated_settings):
    run("add", "--food", "egg", "--date", "2024-03-01")
    run("backup")
    backups = list(isolated_settings.backup_dir.glob("allergylog-backup-*.json"))
    assert len(backups) == 1

    run("add", "--food", "milk", "--date", "2024-03-02")
    assert run("restore", str(backups[0]), "--yes")[0] == 0
    _, out = run("list")
    assert "egg" in out and "milk" not in out


def test_restore_of_bad_file_keeps_records(run, tmp_path):
    run("add", "--food", "egg", "--date", "2024-03-01")
    bad = tmp_path / "bad.json"
    bad.write_text('{"version": 1}', encoding="utf-8")
    code, out = run("restore", str(bad), "--yes")
    assert code == 1
    _, out = run("list")
    assert "egg" in out


def test_sync_push_status_pull(run):
    run("add", "--food", "egg", "--date", "2024-03-01")
    assert run("sync", "push")[0] == 0
    _, out = run("sync", "status")
    assert "Last sync:" in out

    run("add", "--food", "milk", "--date", "2024-03-02")
    assert run("sync", "pull", "--yes")[0] == 0
    _, out = run("list")
    assert "egg" in out and "milk" not in out


def test_user_and_reminders(run):
    _, out = run("user", "mom")
    assert "mom" in out
    code, out = run("remind", "add", "cetirizine", "2.5ml", "08:00")
    assert code == 0
    _, out = run("remind", "list")
    assert "cetirizine 2.5ml [on] by mom" in out


def test_export_csv(run, isolated_settings):
    run("add", "--food", "egg", "--date", "2024-03-01")
    assert run("export-csv")[0] == 0
    files = list(isolated_settings.backup_dir.glob("allergylog-*.csv"))
    assert len(files) == 1
    assert files[0].read_text(encoding="utf-8").splitlines()[1].startswith('"2024-03-01"')


def test_restore_recovers_a_corrupt_log(run, isolated_settings):
    run("add", "--food", "egg", "--date", "2024-03-01")
    run("backup")
    backup = next(isolated_settings.backup_dir.glob("allergylog-backup-*.json"))
    (isolated_settings.data_root / "daily_records.json").write_text("{truncated", encoding="utf-8")

    code, out = run("list")
    assert code == 1
    assert out.startswith("✘")

    code, out = run("restore", str(backup), "--yes")
    assert code == 0
    assert "restored 1 records" in out
    _, out = run("list")
    assert "egg" in out


def test_pull_recovers_a_corrupt_log(run, isolated_settings):
    run("add", "--food", "egg", "--date", "2024-03-01")
    run("sync", "push")
    (isolated_settings.data_root / "daily_records.json").write_text("{truncated", encoding="utf-8")

    assert run("sync", "pull", "--yes")[0] == 0
    _, out = run("list")
    assert "egg" in out


def test_dump_shows_records_that_fail_validation(run, isolated_settings):
    isolated_settings.data_root.mkdir(parents=True)
    (isolated_settings.data_root / "daily_records.json").write_text(
        json.dumps([{"id": "1", "date": "2024-02-30", "food": "egg"}]), encoding="utf-8")
    code, out = run("dump")
    assert code == 0
    assert "Found 1 records" in out
    assert "2024-02-30" in out


def test_pull_without_envelope_reports_the_swap(run, isolated_settings):
    run("add", "--food", "milk", "--date", "2024-03-02")
    isolated_settings.sync_root.mkdir(parents=True)
    (isolated_settings.sync_root / "daily_records.json").write_text(
        json.dumps([{"id": "1", "date": "2024-03-01", "food": "egg"}]), encoding="utf-8")

    code, out = run("sync", "pull", "--yes")
    assert code == 0
    assert "pulled 1 records from an unknown device" in out
    _, out = run("list")
    assert "egg" in out and "milk" not in out


def test_sync_status_tells_whether_a_pull_would_change_anything(run):
    _, out = run("sync", "status")
    assert "Last push from this device: never" in out
    assert "A pull would change" not in out

    run("add", "--food", "egg", "--date", "2024-03-01")
    run("sync", "push")
    _, out = run("sync", "status")
    assert "Last push from this device: never" not in out
    assert "A pull would change" not in out

    run("add", "--food", "milk", "--date", "2024-03-02")
    _, out = run("sync", "status")
    assert "A pull would change the local log." in out


def test_reminder_can_be_switched_off_and_on(run):
    _, out = run("remind", "add", "cetirizine", "2.5ml", "08:00")
    rem_id = out.rsplit("id=", 1)[1].rstrip(")\n")

    assert run("remind", "off", rem_id)[0] == 0
    _, out = run("remind", "list")
    assert "[off]" in out

    code, out = run("remind", "on", rem_id)
    assert code == 0
    assert "turned on" in out
    _, out = run("remind", "list")
    assert "[on]" in out

    code, out = run("remind", "off", "nope")
    assert code == 1
    assert "Reminder nope not found" in out


def test_export_csv_to_unwritable_directory_fails_cleanly(run, tmp_path):
    run("add", "--food", "egg", "--date", "2024-03-01")
    blocker = tmp_path / "file"
    blocker.write_text("x")
    code, out = run("export-csv", "--out", str(blocker / "sub"))
    assert code == 1
    assert out.startswith("✘ cannot write CSV")
