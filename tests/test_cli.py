"""Tests for the flask CLI commands."""
from merkmalverwaltung.models import Merkmalstext


class TestSeed:

    def test_seed_is_repeatable(self, runner):
        """Should create the demo records once and skip them on a second run."""
        first = runner.invoke(args=['seed'])
        second = runner.invoke(args=['seed'])

        assert 'Database seeded successfully! (8 new records)' in first.output
        assert '(0 new records)' in second.output
        assert Merkmalstext.query.count() == 8


class TestCloneIdentnr:

    def test_clone(self, runner, make_record):
        make_record(identnr='T0001')

        result = runner.invoke(args=['clone-identnr', 'T0001', 'T0002'])

        assert result.exit_code == 0
        assert '1 Datensätze von "T0001" zu "T0002" geklont' in result.output
        assert Merkmalstext.query.filter_by(identnr='T0002').count() == 1

    def test_clone_unknown_source(self, runner):
        result = runner.invoke(args=['clone-identnr', 'T0404', 'T0002'])

        assert result.exit_code == 1
        assert 'ERROR' in result.output


class TestListGroups:

    def test_lists_groups(self, runner):
        runner.invoke(args=['seed'])

        result = runner.invoke(args=['list-groups'])

        assert 'Farbe / rot / Farbe: rot [Pos 10]  3x: T0001, T0002, T0003' in result.output
        assert result.output.rstrip().endswith('5 Gruppen')


class TestCheckDb:

    def test_check_db(self, runner):
        result = runner.invoke(args=['check-db'])

        assert result.exit_code == 0
        assert 'Datenbankverbindung OK' in result.output
