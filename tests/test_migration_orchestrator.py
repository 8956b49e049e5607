"""End-to-end tests of the import pipeline over zip archives."""

import json

import pytest

from errors import ConnectivityError, LogWriteError, RemoteMutationError
from importers.transaction_log import read_transaction_log
from models import RecordType
from orchestrator import MigrationOrchestrator, MigrationReport


COMMENTS = [
    {'author': 'bob', 'content': 'first', 'published_at': '2020-01-03T00:00:00Z'},
    {'author': 'alice', 'content': 'second', 'published_at': '2020-01-04T00:00:00Z'},
]


@pytest.fixture
def sample_archive(make_archive, make_note):
    return make_archive([
        ("kibela-acme-1/notes/1-Draft.md", make_note(title="Draft", published_at=None)),
        ("kibela-acme-1/notes/Eng/2-Note.md", make_note(title="Note", groups=["Eng", "Ops"], comments=COMMENTS)),
        ("kibela-acme-1/attachments/3.png", b"\x89PNG\r\n"),
    ])


def apply_config(config):
    config['migration']['apply'] = True
    return config


class TestSimulateRun:
    def test_counts_and_records(self, base_config, sample_archive, tmp_path):
        orchestrator = MigrationOrchestrator(base_config, run_id="sim")

        stats = orchestrator.run([sample_archive])

        assert stats['success'] == 4
        assert stats['failure'] == 0
        assert stats['skipped'] == 1
        assert stats['entries_succeeded'] == 2
        assert stats['records_by_type'] == {'note': 1, 'comment': 2, 'attachment': 1}
        assert stats['mode'] == 'simulate'
        assert not (tmp_path / "transaction-sim.log").exists()

    def test_no_remote_calls(self, base_config, sample_archive, fake_client):
        orchestrator = MigrationOrchestrator(base_config, client=fake_client)

        orchestrator.run([sample_archive])

        assert orchestrator.client is None
        assert orchestrator.resolver is None
        assert fake_client.calls == []

    def test_progress_lines(self, base_config, sample_archive, caplog):
        with caplog.at_level('INFO', logger='kibela_importer'):
            MigrationOrchestrator(base_config, run_id="sim").run([sample_archive])

        assert "Processing (dry-run) [00002] kibela-acme-1/notes/Eng/2-Note.md" in caplog.text
        assert "success/failure=4/0" in caplog.text
        assert "Initial phase finished (logfile=" in caplog.text

    def test_progress_bar(self, base_config, sample_archive):
        base_config['export']['progress_bars'] = True

        stats = MigrationOrchestrator(base_config).run([sample_archive])

        assert stats['success'] == 4


class TestApplyRun:
    def test_kept_log_order(self, base_config, sample_archive, fake_client, tmp_path):
        orchestrator = MigrationOrchestrator(apply_config(base_config), client=fake_client, run_id="run1")

        stats = orchestrator.run([sample_archive])

        records = read_transaction_log(tmp_path / "transaction-run1.log")
        assert [record.type for record in records] == [
            RecordType.NOTE, RecordType.COMMENT, RecordType.COMMENT, RecordType.ATTACHMENT
        ]
        note, first, second, attachment = records
        assert note.source_file == "kibela-acme-1/notes/Eng/2-Note.md"
        assert note.source_id == first.source_id == second.source_id == "2"
        assert note.content == "Body\n"
        assert first.content == "first"
        assert attachment.source_id == "3"
        assert attachment.content is None
        assert stats['log_kept'] is True

    def test_ping_before_any_entry(self, base_config, sample_archive, fake_client):
        MigrationOrchestrator(apply_config(base_config), client=fake_client).run([sample_archive])

        assert fake_client.calls[0] == ('ping',)

    def test_one_group_per_distinct_name(self, base_config, make_archive, make_note, fake_client):
        archive = make_archive([
            ("kibela-acme-1/notes/1-A.md", make_note(groups=["Eng", "Ops"])),
            ("kibela-acme-1/notes/2-B.md", make_note(groups=["Ops"])),
            ("kibela-acme-1/notes/3-C.md", make_note(groups=["Eng", "Design"])),
        ])

        MigrationOrchestrator(apply_config(base_config), client=fake_client).run([archive])

        assert [call[1] for call in fake_client.calls_named('create_group')] == ["Eng", "Ops", "Design"]

    def test_authors_resolved_once_across_archives(self, base_config, make_archive, make_note, fake_client):
        first = make_archive([("kibela-acme-1/notes/1-A.md", make_note(author="ghost"))], name="a.zip")
        second = make_archive([("kibela-acme-2/notes/2-B.md", make_note(author="ghost"))], name="b.zip")

        MigrationOrchestrator(apply_config(base_config), client=fake_client).run([first, second])

        assert len(fake_client.calls_named('get_user_by_account')) == 1
        assert len(fake_client.calls_named('create_disabled_user')) == 1
        assert len(fake_client.calls_named('create_note')) == 2

    def test_unreachable_destination(self, base_config, sample_archive, fake_client, tmp_path):
        def unreachable():
            raise ConnectivityError("down")

        fake_client.ping = unreachable

        with pytest.raises(ConnectivityError):
            MigrationOrchestrator(apply_config(base_config), client=fake_client, run_id="down").run([sample_archive])
        assert not (tmp_path / "transaction-down.log").exists()
        assert fake_client.calls == []

    def test_existing_log_aborts(self, base_config, sample_archive, fake_client, tmp_path):
        (tmp_path / "transaction-dup.log").write_text("")

        with pytest.raises(LogWriteError):
            MigrationOrchestrator(apply_config(base_config), client=fake_client, run_id="dup").run([sample_archive])
        assert fake_client.calls_named('create_note') == []

    def test_attachment_without_source_id_is_not_uploaded(self, base_config, make_archive, fake_client, tmp_path):
        archive = make_archive([("kibela-acme-1/attachments/.hidden", b"data")])

        stats = MigrationOrchestrator(apply_config(base_config), client=fake_client, run_id="hidden").run([archive])

        assert stats['failure'] == 1
        assert stats['success'] == 0
        assert fake_client.calls_named('upload_attachment') == []
        assert not (tmp_path / "transaction-hidden.log").exists()


class TestFailureIsolation:
    def test_corrupted_entry_among_five(self, base_config, make_archive, make_note):
        archive = make_archive([
            ("kibela-acme-1/notes/1-A.md", make_note()),
            ("kibela-acme-1/attachments/2.png", b"png"),
            ("kibela-acme-1/notes/3-Broken.md", "---\nauthor: [unclosed\n---\n# Broken\n\nBody\n"),
            ("kibela-acme-1/notes/4-D.md", make_note()),
            ("kibela-acme-1/attachments/5.png", b"png"),
        ])

        stats = MigrationOrchestrator(base_config).run([archive])

        assert stats['failure'] == 1
        assert stats['success'] == 4
        assert stats['processed'] == 5
        assert stats['errors'][0]['path'] == "kibela-acme-1/notes/3-Broken.md"

    def test_partial_note_keeps_created_records(self, base_config, make_archive, make_note, fake_client, tmp_path):
        archive = make_archive([
            ("kibela-acme-1/notes/1-A.md", make_note(comments=COMMENTS)),
        ])

        def refuse(commentable_id, content, author_id, published_at):
            raise RemoteMutationError("gone")

        fake_client.create_comment = refuse

        stats = MigrationOrchestrator(apply_config(base_config), client=fake_client, run_id="part").run([archive])

        assert stats['failure'] == 1
        assert stats['success'] == 1
        records = read_transaction_log(tmp_path / "transaction-part.log")
        assert [record.type for record in records] == [RecordType.NOTE]


class TestMigrationReport:
    def test_console_report(self, base_config, sample_archive):
        stats = MigrationOrchestrator(base_config).run([sample_archive])
        generator = MigrationReport()

        report = generator.generate_report(stats, exported_from='acme')
        text = generator.format_console_report(report)

        assert report['summary']['success'] == 4
        assert report['summary']['drafts_skipped'] == 1
        assert "https://acme.kibe.la" in text
        assert "Comments:    2" in text
        assert "Transaction log: not kept" in text

    def test_json_export(self, base_config, sample_archive, tmp_path):
        stats = MigrationOrchestrator(base_config).run([sample_archive])
        generator = MigrationReport()
        path = tmp_path / "report.json"

        generator.export_json_report(generator.generate_report(stats), str(path))

        data = json.loads(path.read_text(encoding='utf-8'))
        assert data['records']['by_type']['note'] == 1
