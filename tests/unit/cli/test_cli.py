"""End-to-end tests for the agrirag CLI commands (offline providers)."""

from __future__ import annotations

import re
from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from agrirag.cli.main import app
from agrirag.db.connection import Database
from agrirag.db.models import DatasetStatus
from agrirag.db.repository import SqliteRepository

runner = CliRunner()

COMPUTE_QUERY = "Total rice production in Punjab from 2020 to 2022"


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------


@pytest.fixture(autouse=True)
def offline_env(tmp_path: Path, monkeypatch) -> Path:
    """Run every command in tmp_path with no API keys and no global config."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("agrirag.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    for var in (
        "HUGGINGFACE_API_KEY",
        "AGRIRAG_GENERATION_MODEL",
        "AGRIRAG_EMBEDDING_MODEL",
        "AGRIRAG_LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / ".agrirag.db"


@pytest.fixture
def notes_txt(tmp_path: Path) -> Path:
    path = tmp_path / "notes.txt"
    path.write_text(
        "Wheat is sown in November. Irrigate at crown root initiation.", encoding="utf-8"
    )
    return path


def _ingest(db_path: Path, *files: Path):
    return runner.invoke(app, ["ingest", *map(str, files), "--db", str(db_path)])


def _datasets(db_path: Path):
    conn = Database(db_path).connect()
    try:
        return SqliteRepository(conn).list_datasets()
    finally:
        conn.close()


def _conversation_id(output: str) -> str:
    match = re.search(r"Conversation: ([0-9a-f-]{36})", output)
    assert match, output
    return match.group(1)


# ------------------------------------------------------------------
# version
# ------------------------------------------------------------------


def test_version_flag():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.startswith("agrirag ")


def test_version_command():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "agrirag" in result.output


# ------------------------------------------------------------------
# ingest
# ------------------------------------------------------------------


def test_ingest_requires_files(db_path):
    result = runner.invoke(app, ["ingest", "--db", str(db_path)])
    assert result.exit_code != 0


def test_ingest_csv_and_text(db_path, crop_csv, notes_txt):
    result = _ingest(db_path, crop_csv, notes_txt)

    assert result.exit_code == 0, result.output
    assert "crops.csv: 4 chunks" in result.output
    assert "notes.txt: 1 chunks" in result.output
    assert "offline hash embeddings" in result.output

    datasets = _datasets(db_path)
    assert sorted(d.name for d in datasets) == ["crops.csv", "notes.txt"]
    assert all(d.status is DatasetStatus.READY for d in datasets)
    assert {d.description for d in datasets} == {"Uploaded CSV file", "Uploaded TXT file"}


def test_ingest_unknown_type_creates_nothing(db_path, tmp_path):
    doc = tmp_path / "report.docx"
    doc.write_bytes(b"PK")

    result = _ingest(db_path, doc)

    assert result.exit_code == 1
    assert "None of the 1 file(s)" in result.output
    assert _datasets(db_path) == []


def test_ingest_image_is_registered_as_error(db_path, tmp_path):
    image = tmp_path / "field.png"
    image.write_bytes(b"\x89PNG")

    result = _ingest(db_path, image)

    assert result.exit_code == 1
    [dataset] = _datasets(db_path)
    assert dataset.status is DatasetStatus.ERROR


def test_ingest_partial_failure_still_succeeds(db_path, tmp_path, crop_csv):
    image = tmp_path / "field.jpg"
    image.write_bytes(b"\xff\xd8")

    result = _ingest(db_path, image, crop_csv)

    assert result.exit_code == 0
    statuses = {d.name: d.status for d in _datasets(db_path)}
    assert statuses == {"field.jpg": DatasetStatus.ERROR, "crops.csv": DatasetStatus.READY}


def test_ingest_invalid_config(db_path, tmp_path, crop_csv):
    (tmp_path / "agrirag.yaml").write_text(
        yaml.dump({"retrieval": {"top_k": 0}}), encoding="utf-8"
    )
    result = _ingest(db_path, crop_csv)
    assert result.exit_code == 1
    assert "Invalid configuration" in result.output
    assert not db_path.exists()


# ------------------------------------------------------------------
# ask
# ------------------------------------------------------------------


def test_ask_without_db(db_path):
    result = runner.invoke(app, ["ask", "anything", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "No database found" in result.output


def test_ask_empty_question(db_path, crop_csv):
    _ingest(db_path, crop_csv)
    result = runner.invoke(app, ["ask", "   ", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "question is empty" in result.output


def test_ask_computational(db_path, crop_csv):
    _ingest(db_path, crop_csv)

    result = runner.invoke(app, ["ask", COMPUTE_QUERY, "--db", str(db_path)])

    assert result.exit_code == 0, result.output
    assert "Computation" in result.output
    assert "Total: 220.00" in result.output
    assert "Average: 110.00" in result.output
    assert "Sources: crops.csv" in result.output


def test_ask_conversational_offline(db_path, notes_txt):
    _ingest(db_path, notes_txt)

    result = runner.invoke(app, ["ask", "When is wheat sown?", "--db", str(db_path)])

    assert result.exit_code == 0, result.output
    assert "Answer" in result.output
    assert "agricultural" in result.output
    assert "Sources: notes.txt" in result.output


def test_ask_with_nothing_indexed(db_path, tmp_path):
    db_path.touch()
    result = runner.invoke(app, ["ask", "When is wheat sown?", "--db", str(db_path)])
    assert result.exit_code == 0
    assert "enough information" in result.output


def test_ask_continues_conversation_and_history_replays_it(db_path, crop_csv):
    _ingest(db_path, crop_csv)
    first = runner.invoke(app, ["ask", COMPUTE_QUERY, "--db", str(db_path)])
    conversation_id = _conversation_id(first.output)

    second = runner.invoke(
        app, ["ask", "average wheat in punjab", "-c", conversation_id, "--db", str(db_path)]
    )
    assert second.exit_code == 0, second.output
    assert _conversation_id(second.output) == conversation_id

    history = runner.invoke(app, ["history", conversation_id, "--db", str(db_path)])
    assert history.exit_code == 0, history.output
    assert history.output.count("You") == 2
    assert history.output.count("Assistant") == 2
    assert "average wheat in punjab" in history.output
    assert "Sources: crops.csv" in history.output


def test_ask_unknown_conversation(db_path, crop_csv):
    _ingest(db_path, crop_csv)
    result = runner.invoke(app, ["ask", COMPUTE_QUERY, "-c", "missing", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "does not exist" in result.output


def test_ask_bad_vocabulary_path(db_path, tmp_path, crop_csv):
    _ingest(db_path, crop_csv)
    (tmp_path / "agrirag.yaml").write_text(
        yaml.dump({"vocabulary": {"path": str(tmp_path / "missing.yaml")}}), encoding="utf-8"
    )
    result = runner.invoke(app, ["ask", COMPUTE_QUERY, "--db", str(db_path)])
    assert result.exit_code == 1
    assert "computation vocabulary" in result.output


def test_ask_dimension_mismatch(db_path, tmp_path, crop_csv):
    _ingest(db_path, crop_csv)
    (tmp_path / "agrirag.yaml").write_text(
        yaml.dump({"embedding": {"dimensions": 16}}), encoding="utf-8"
    )
    result = runner.invoke(app, ["ask", COMPUTE_QUERY, "--db", str(db_path)])
    assert result.exit_code == 1
    assert "Stored embeddings do not match" in result.output


# ------------------------------------------------------------------
# datasets / history / remove
# ------------------------------------------------------------------


def test_datasets_empty(db_path):
    db_path.touch()
    result = runner.invoke(app, ["datasets", "--db", str(db_path)])
    assert result.exit_code == 0
    assert "No datasets yet" in result.output


def test_datasets_lists_status(db_path, crop_csv):
    _ingest(db_path, crop_csv)
    result = runner.invoke(app, ["datasets", "--db", str(db_path)])
    assert result.exit_code == 0
    assert "crops.csv" in result.output
    assert "ready" in result.output


def test_datasets_without_db(db_path):
    result = runner.invoke(app, ["datasets", "--db", str(db_path)])
    assert result.exit_code == 1


def test_history_unknown_conversation(db_path):
    db_path.touch()
    result = runner.invoke(app, ["history", "missing", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "does not exist" in result.output


def test_remove_with_yes(db_path, crop_csv):
    _ingest(db_path, crop_csv)
    [dataset] = _datasets(db_path)

    result = runner.invoke(app, ["remove", dataset.id, "--yes", "--db", str(db_path)])

    assert result.exit_code == 0, result.output
    assert "Removed: crops.csv" in result.output
    assert "4 chunks deleted" in result.output
    assert _datasets(db_path) == []


def test_remove_declined(db_path, crop_csv):
    _ingest(db_path, crop_csv)
    [dataset] = _datasets(db_path)

    result = runner.invoke(app, ["remove", dataset.id, "--db", str(db_path)], input="n\n")

    assert result.exit_code == 0
    assert "Cancelled" in result.output
    assert len(_datasets(db_path)) == 1


def test_remove_unknown_dataset(db_path):
    db_path.touch()
    result = runner.invoke(app, ["remove", "missing", "--yes", "--db", str(db_path)])
    assert result.exit_code == 0
    assert "Dataset not found" in result.output


def test_removed_dataset_is_no_longer_computed_over(db_path, crop_csv):
    _ingest(db_path, crop_csv)
    [dataset] = _datasets(db_path)
    runner.invoke(app, ["remove", dataset.id, "--yes", "--db", str(db_path)])

    result = runner.invoke(app, ["ask", COMPUTE_QUERY, "--db", str(db_path)])

    assert result.exit_code == 0
    assert "No CSV datasets available" in result.output
