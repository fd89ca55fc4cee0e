"""
Tests for CLI argument parsing and the commands.

The commands run against a JSON store in a temporary directory.
"""

import json
from argparse import Namespace
from unittest.mock import patch

import pytest

from planit.cli import build_config, create_parser, main, validate_args
from planit.store import COLL_MISSIONS, COLL_USERS, JSONFileStore


PLANNING = """DATE;AFFAIRE;TECH;CA;HEURES;TRAJET
04/03/2024;AB-001;tech01;RG;7,5;1
05/03/2024;AB-002;tech01;RG;8;
;AB-003;tech01;RG;3;
"""


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ('PLANIT_STORE', 'PLANIT_DATABASE_URL', 'PLANIT_SYNC_URL', 'PLANIT_SYNC_TIMEOUT'):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def store_path(tmp_path):
    return str(tmp_path / "data.json")


@pytest.fixture
def planning_csv(tmp_path):
    path = tmp_path / "planning.csv"
    path.write_text(PLANNING, encoding='utf-8')
    return str(path)


def import_planning(store_path, planning_csv):
    assert main(['import-missions', '--csv', planning_csv, '--store', store_path]) == 0


class TestCreateParser:
    """Tests for create_parser function."""

    def test_parser_creation(self):
        parser = create_parser()
        assert parser.prog == 'planit'

    def test_import_requires_csv(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(['import-missions'])

    def test_common_options_on_subcommands(self):
        args = create_parser().parse_args([
            'week', '--tech', 'tech01', '--week', '46-48', '--store', 'x.json', '-v'
        ])
        assert args.command == 'week'
        assert args.week == '46-48'
        assert args.store == 'x.json'
        assert args.verbose is True

    def test_week_range_reaches_config(self):
        args = create_parser().parse_args([
            'week', '--tech', 'tech01', '--week', '46-48', '--year', '2024'
        ])
        config = build_config(args)
        assert config.weeks == [46, 47, 48]
        assert config.year == 2024

    def test_no_week_range_outside_week_command(self, planning_csv):
        args = create_parser().parse_args(['import-missions', '--csv', planning_csv])
        assert build_config(args).weeks is None

    def test_review_decision_required(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(['review', '--id', 'm1'])

    def test_review_decisions_exclusive(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(['review', '--id', 'm1', '--validate', '--reject'])

    def test_export_date_filters(self):
        args = create_parser().parse_args([
            'export-missions', '-o', 'out.csv', '--from', '2024-03-01', '--tech', 'a', '--tech', 'b'
        ])
        assert args.start.isoformat() == '2024-03-01'
        assert args.tech == ['a', 'b']

    def test_no_command(self):
        assert main([]) == 1


class TestValidateArgs:
    """Tests for validate_args function."""

    def test_missing_csv(self):
        assert validate_args(Namespace(csv='/nonexistent/file.csv')) is False

    def test_reject_without_comment(self):
        assert validate_args(Namespace(reject=True, comment=' ')) is False

    def test_valid(self, planning_csv):
        assert validate_args(Namespace(csv=planning_csv)) is True


class TestImportCommands:
    """Tests for import-missions and import-users."""

    def test_dry_run_writes_nothing(self, store_path, planning_csv):
        code = main(['import-missions', '--csv', planning_csv, '--store', store_path, '--dry-run'])
        assert code == 0
        assert JSONFileStore(store_path).list_all(COLL_MISSIONS) == []

    def test_import_missions(self, store_path, planning_csv):
        import_planning(store_path, planning_csv)

        missions = JSONFileStore(store_path).list_all(COLL_MISSIONS)
        assert len(missions) == 2
        assert {m['job_code'] for m in missions} == {'AB-001', 'AB-002'}
        assert all(m['status'] == 'SUBMITTED' for m in missions)
        assert all(m['manager_initials'] == 'RG' for m in missions)

    def test_missing_columns(self, store_path, tmp_path):
        bad = tmp_path / "bad.csv"
        bad.write_text("Jour;Heures\n04/03/2024;8\n", encoding='utf-8')
        assert main(['import-missions', '--csv', str(bad), '--store', store_path]) == 1

    def test_no_valid_rows(self, store_path, tmp_path):
        empty = tmp_path / "empty.csv"
        empty.write_text("DATE;AFFAIRE;TECH\n;AB;\n", encoding='utf-8')
        assert main(['import-missions', '--csv', str(empty), '--store', store_path]) == 1

    def test_import_users_replaces_roster(self, store_path, tmp_path):
        assert main(['seed', '--store', store_path]) == 0
        roster = tmp_path / "users.csv"
        roster.write_text("Login;Nom;Initiales;Role\ntech20;Tech 20;T20;Technicien\n", encoding='utf-8')

        assert main(['import-users', '--csv', str(roster), '--store', store_path]) == 0

        users = JSONFileStore(store_path).list_all(COLL_USERS)
        assert [u['id'] for u in users] == ['tech20']
        assert users[0]['credential_secret'] == '1234'

    def test_sync_after_import(self, store_path, planning_csv):
        with patch('planit.cli.RemoteSync') as mock_sync:
            code = main([
                'import-missions', '--csv', planning_csv, '--store', store_path,
                '--sync-url', 'https://example.com/api/data',
            ])
        assert code == 0
        mock_sync.assert_called_once_with('https://example.com/api/data', 3)
        mock_sync.return_value.push_from.assert_called_once()


class TestWeekCommand:

    def test_week_view(self, store_path, planning_csv, capsys):
        import_planning(store_path, planning_csv)

        code = main(['week', '--tech', 'TECH01', '--week', '10', '--year', '2024', '--store', store_path])

        assert code == 0
        out = capsys.readouterr().out
        assert "tech01: week 10 of 2024" in out
        assert "Total: 16.5h (work 15.5h, travel 1h, overtime 0h)" in out

    def test_invalid_week_spec(self, store_path):
        assert main(['week', '--tech', 'tech01', '--week', '60', '--store', store_path]) == 1


class TestReviewCommand:

    def _mission_id(self, store_path, job_code):
        for doc in JSONFileStore(store_path).list_all(COLL_MISSIONS):
            if doc['job_code'] == job_code:
                return doc['id']
        raise AssertionError(job_code)

    def test_validate(self, store_path, planning_csv):
        import_planning(store_path, planning_csv)
        mission_id = self._mission_id(store_path, 'AB-001')

        assert main(['review', '--id', mission_id, '--validate', '--store', store_path]) == 0
        assert JSONFileStore(store_path).get(COLL_MISSIONS, mission_id)['status'] == 'VALIDATED'

    def test_reject_with_comment(self, store_path, planning_csv):
        import_planning(store_path, planning_csv)
        mission_id = self._mission_id(store_path, 'AB-002')

        code = main(['review', '--id', mission_id, '--reject', '--comment', 'Heures', '--store', store_path])

        assert code == 0
        doc = JSONFileStore(store_path).get(COLL_MISSIONS, mission_id)
        assert doc['status'] == 'REJECTED'
        assert doc['rejection_comment'] == 'Heures'

    def test_reject_without_comment(self, store_path):
        assert main(['review', '--id', 'm1', '--reject', '--store', store_path]) == 1

    def test_unknown_mission(self, store_path):
        assert main(['review', '--id', 'nope', '--validate', '--store', store_path]) == 1


class TestExportCommands:

    def test_export_missions(self, store_path, planning_csv, tmp_path):
        import_planning(store_path, planning_csv)
        output = tmp_path / "export.csv"

        assert main(['export-missions', '-o', str(output), '--store', store_path]) == 0

        lines = output.read_text(encoding='utf-8-sig').split('\n')
        assert lines[0] == 'DATE;AFFAIRE;TECHNICIEN;HEURES;TRAJET;HEURES_SUPP;IGD;INFO;ADRESSE'
        assert lines[1].startswith('"2024-03-05";"AB-002"')
        assert len(lines) == 3

    def test_export_with_no_match(self, store_path, planning_csv, tmp_path):
        import_planning(store_path, planning_csv)
        output = tmp_path / "export.csv"
        code = main(['export-missions', '-o', str(output), '--search', 'ZZZ', '--store', store_path])
        assert code == 1
        assert not output.exists()

    def test_export_users(self, store_path, tmp_path):
        main(['seed', '--store', store_path])
        output = tmp_path / "users.csv"

        assert main(['export-users', '-o', str(output), '--store', store_path]) == 0
        assert '"admin";"Administrateur Général";"AD";"ADMIN";"admin"' in output.read_text(encoding='utf-8')

    def test_export_responses_unknown_template(self, store_path, tmp_path):
        code = main(['export-responses', '--template', 'nope', '-o', str(tmp_path / "r.csv"),
                     '--store', store_path])
        assert code == 1

    def test_export_responses_empty(self, store_path, tmp_path):
        main(['seed', '--store', store_path])
        code = main(['export-responses', '--template', 'tpl-interv', '-o', str(tmp_path / "r.csv"),
                     '--store', store_path])
        assert code == 1


class TestSeedCommand:

    def test_seed(self, store_path):
        assert main(['seed', '--store', store_path]) == 0
        with open(store_path, encoding='utf-8') as f:
            data = json.load(f)
        assert len(data[COLL_USERS]) == 18
        assert main(['seed', '--store', store_path]) == 0

    def test_keyboard_interrupt(self, store_path):
        with patch('planit.cli.seed_if_empty', side_effect=KeyboardInterrupt):
            assert main(['seed', '--store', store_path]) == 130

    def test_unreadable_store(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{", encoding='utf-8')
        assert main(['seed', '--store', str(path)]) == 1
