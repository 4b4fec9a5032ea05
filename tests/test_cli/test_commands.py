"""
Тесты CLI: main([...]) на файловом хранилище во временном каталоге.
"""

import json

import pytest

from bmc_inventory.cli import main, setup_parser


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """config.yaml: файловое хранилище в tmp_path, requeue без задержки."""
    monkeypatch.chdir(tmp_path)
    for name in ("BMC_INVENTORY_STORAGE", "BMC_INVENTORY_DATA_DIR",
                 "BMC_USERNAME", "BMC_PASSWORD"):
        monkeypatch.delenv(name, raising=False)

    path = tmp_path / "config.yaml"
    path.write_text(
        "storage:\n"
        "  backend: file\n"
        f"  data_dir: {tmp_path / 'data'}\n"
        "controller:\n"
        "  requeue_delay: 0\n"
        "logging:\n"
        "  level: WARNING\n"
    )
    return str(path)


@pytest.fixture
def payload_file(tmp_path, discovery_result):
    path = tmp_path / "node01.json"
    path.write_bytes(discovery_result.to_payload())
    return str(path)


@pytest.fixture
def patched_walker(monkeypatch, fake_session, make_walker):
    """discover/submit обходят FakeRedfishSession вместо сети."""
    walker = make_walker(fake_session)
    monkeypatch.setattr("bmc_inventory.cli.commands.discover.build_walker", lambda config: walker)
    monkeypatch.setattr("bmc_inventory.cli.commands.submit.build_walker", lambda config: walker)
    return walker


class TestParser:

    def test_subcommands(self):
        args = setup_parser().parse_args(["submit", "--file", "p.json", "--no-reconcile"])
        assert args.command == "submit"
        assert args.file == "p.json"
        assert args.no_reconcile is True

    def test_version(self, capsys):
        assert main(["version"]) == 0
        assert "bmc_inventory" in capsys.readouterr().out

    def test_no_command(self, capsys):
        assert main([]) == 2

    def test_missing_config(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        assert main(["-c", "nope.yaml", "snapshots"]) == 2
        assert "Ошибка конфигурации" in capsys.readouterr().out


class TestSubmit:

    def test_submit_file(self, config_file, payload_file, capsys):
        assert main(["-c", config_file, "submit", "--file", payload_file]) == 0

        out = capsys.readouterr().out
        assert ": Complete" in out
        assert "Snapshot processed successfully." in out
        assert "Created 1 parent and 2 child devices." in out

    def test_submit_invalid_payload(self, config_file, tmp_path, capsys):
        bad = tmp_path / "bad.json"
        bad.write_text("{not json")

        assert main(["-c", config_file, "submit", "--file", str(bad)]) == 1
        assert ": Error" in capsys.readouterr().out

    def test_submit_missing_file(self, config_file, capsys):
        assert main(["-c", config_file, "submit", "--file", "missing.json"]) == 1

    def test_submit_without_source(self, config_file):
        assert main(["-c", config_file, "submit"]) == 2

    def test_submit_from_bmc(self, config_file, patched_walker, capsys):
        code = main([
            "-c", config_file, "submit", "10.0.0.5",
            "--username", "root", "--password", "calvin",
        ])

        assert code == 0
        assert "Created 1 parent and 3 child devices." in capsys.readouterr().out


class TestSnapshotsAndReconcile:

    def test_no_reconcile_then_reconcile(self, config_file, payload_file, capsys):
        assert main(["-c", config_file, "submit", "--file", payload_file, "--no-reconcile"]) == 0
        uid = capsys.readouterr().out.split()[1]

        assert main(["-c", config_file, "snapshots", "--json"]) == 0
        listed = json.loads(capsys.readouterr().out)
        assert listed[0]["uid"] == uid
        assert listed[0]["phase"] == ""

        assert main(["-c", config_file, "reconcile", uid]) == 0
        assert ": Complete" in capsys.readouterr().out

    def test_phase_filter(self, config_file, payload_file, capsys):
        main(["-c", config_file, "submit", "--file", payload_file])
        capsys.readouterr()

        main(["-c", config_file, "snapshots", "--phase", "Error"])
        assert "Snapshot не найдены" in capsys.readouterr().out

        main(["-c", config_file, "snapshots", "--phase", "Complete"])
        assert "Всего: 1" in capsys.readouterr().out

    def test_reconcile_unknown(self, config_file):
        assert main(["-c", config_file, "reconcile", "ds-ffffffff"]) == 1


class TestDiscover:

    def test_discover_to_file(self, config_file, patched_walker, tmp_path, capsys):
        output = tmp_path / "out" / "payload.json"

        code = main([
            "-c", config_file, "discover", "10.0.0.5",
            "-u", "root", "-p", "calvin", "-o", str(output),
        ])

        assert code == 0
        assert "Redfish Discovery Complete: Found 4 total devices" in capsys.readouterr().out
        payload = json.loads(output.read_bytes())
        assert len(payload["devices"]) == 4
        assert payload["endpoint"] == "10.0.0.5"

    def test_discover_stdout_is_json(self, config_file, patched_walker, capsys):
        code = main(["-c", config_file, "discover", "10.0.0.5", "-u", "root", "-p", "calvin"])

        assert code == 0
        captured = capsys.readouterr()
        payload = json.loads(captured.out)
        assert len(payload["devices"]) == 4
        assert "Redfish Discovery Complete: Found 4 total devices" in captured.err

    def test_discover_env_credentials(self, config_file, patched_walker, monkeypatch, capsys):
        monkeypatch.setenv("BMC_USERNAME", "root")
        monkeypatch.setenv("BMC_PASSWORD", "calvin")

        assert main(["-c", config_file, "discover", "10.0.0.5", "--no-input"]) == 0

    def test_discover_no_credentials(self, config_file, patched_walker):
        assert main(["-c", config_file, "discover", "10.0.0.5", "--no-input"]) == 1

    def test_discover_unreachable(self, config_file, monkeypatch, make_session, make_walker):
        walker = make_walker(make_session({}))
        monkeypatch.setattr("bmc_inventory.cli.commands.discover.build_walker", lambda config: walker)

        assert main(["-c", config_file, "discover", "10.0.0.5", "-u", "root", "-p", "x"]) == 1
