import errno
import os

import pytest

from filesystem import file_ops
from filesystem.file_ops import FileSystemOperations
from utils.exceptions import ErrorKind, MusicSorterError


@pytest.fixture
def ops():
    return FileSystemOperations([".mp3", ".FLAC"])


def test_list_files_recursive_and_sorted(tmp_path, ops):
    (tmp_path / "b").mkdir()
    (tmp_path / "b" / "z.mp3").write_text("x")
    (tmp_path / "a.txt").write_text("x")
    (tmp_path / "c.mp3").write_text("x")

    assert ops.list_files(tmp_path) == [
        tmp_path / "a.txt", tmp_path / "b" / "z.mp3", tmp_path / "c.mp3"
    ]
    assert ops.list_files(tmp_path, recursive=False) == [tmp_path / "a.txt", tmp_path / "c.mp3"]


def test_list_files_excludes_directory(tmp_path, ops):
    (tmp_path / "sorted" / "Artist").mkdir(parents=True)
    (tmp_path / "sorted" / "Artist" / "old.mp3").write_text("x")
    (tmp_path / "new.mp3").write_text("x")

    assert ops.list_files(tmp_path, exclude=tmp_path / "sorted") == [tmp_path / "new.mp3"]


def test_list_files_missing_directory(tmp_path, ops):
    with pytest.raises(MusicSorterError) as excinfo:
        ops.list_files(tmp_path / "missing")
    assert excinfo.value.kind is ErrorKind.DIRECTORY_OPERATION_ERROR


def test_list_files_on_a_file(tmp_path, ops):
    target = tmp_path / "song.mp3"
    target.write_text("x")
    with pytest.raises(MusicSorterError) as excinfo:
        ops.list_files(target)
    assert excinfo.value.kind is ErrorKind.DIRECTORY_OPERATION_ERROR


def test_is_supported_ignores_case(tmp_path, ops):
    assert ops.is_supported(tmp_path / "a.MP3")
    assert ops.is_supported(tmp_path / "a.flac")
    assert not ops.is_supported(tmp_path / "a.wav")
    assert not ops.is_supported(tmp_path / "mp3")


def test_validate_audio_file(tmp_path, ops):
    song = tmp_path / "a.mp3"
    song.write_text("x")
    assert ops.validate_audio_file(song) == ".mp3"

    with pytest.raises(MusicSorterError) as excinfo:
        ops.validate_audio_file(tmp_path / "a.ogg")
    assert excinfo.value.kind is ErrorKind.INVALID_FILE_TYPE
    assert excinfo.value.status_code == 400

    with pytest.raises(MusicSorterError) as excinfo:
        ops.validate_audio_file(tmp_path / "gone.mp3")
    assert excinfo.value.kind is ErrorKind.FILE_NOT_FOUND
    assert excinfo.value.status_code == 404


def test_file_exists(tmp_path, ops):
    (tmp_path / "a.mp3").write_text("x")
    assert ops.file_exists(tmp_path / "a.mp3")
    assert not ops.file_exists(tmp_path / "b.mp3")


def test_ensure_directory_is_idempotent(tmp_path, ops):
    target = tmp_path / "a" / "b" / "c"
    ops.ensure_directory(target)
    ops.ensure_directory(target)
    assert target.is_dir()


def test_ensure_directory_failure(tmp_path, ops):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    with pytest.raises(MusicSorterError) as excinfo:
        ops.ensure_directory(blocker / "sub")
    assert excinfo.value.kind is ErrorKind.DIRECTORY_OPERATION_ERROR
    assert excinfo.value.status_code == 500


def test_move_file(tmp_path, ops):
    source = tmp_path / "in" / "song.mp3"
    source.parent.mkdir()
    source.write_text("content")
    target_dir = tmp_path / "out" / "Artist" / "Album"

    destination = ops.move_file(source, target_dir, "song.mp3")

    assert destination == target_dir / "song.mp3"
    assert destination.read_text() == "content"
    assert not source.exists()


def test_move_missing_source(tmp_path, ops):
    with pytest.raises(MusicSorterError) as excinfo:
        ops.move_file(tmp_path / "gone.mp3", tmp_path / "out")
    error = excinfo.value
    assert error.kind is ErrorKind.FILE_PROCESSING_ERROR
    assert error.source_path == str(tmp_path / "gone.mp3")
    assert error.dest_path == str(tmp_path / "out" / "gone.mp3")
    assert not (tmp_path / "out").exists()


def test_move_never_overwrites(tmp_path, ops):
    source = tmp_path / "song.mp3"
    source.write_text("new")
    target_dir = tmp_path / "out"
    target_dir.mkdir()
    (target_dir / "song.mp3").write_text("old")

    with pytest.raises(MusicSorterError) as excinfo:
        ops.move_file(source, target_dir)
    assert excinfo.value.kind is ErrorKind.FILE_PROCESSING_ERROR
    assert (target_dir / "song.mp3").read_text() == "old"
    assert source.read_text() == "new"


def test_move_directory_creation_failure(tmp_path, ops):
    source = tmp_path / "song.mp3"
    source.write_text("x")
    blocker = tmp_path / "blocker"
    blocker.write_text("x")

    with pytest.raises(MusicSorterError) as excinfo:
        ops.move_file(source, blocker / "Album")
    assert excinfo.value.kind is ErrorKind.DIRECTORY_OPERATION_ERROR
    assert source.exists()


def _link_fails_with(code):
    def link(src, dst):
        raise OSError(code, os.strerror(code))
    return link


@pytest.mark.parametrize("code", [errno.EXDEV, errno.EPERM])
def test_move_copies_when_hard_links_are_unavailable(tmp_path, ops, monkeypatch, code):
    monkeypatch.setattr(file_ops.os, "link", _link_fails_with(code))
    source = tmp_path / "song.mp3"
    source.write_text("content")

    destination = ops.move_file(source, tmp_path / "out")

    assert destination.read_text() == "content"
    assert not source.exists()


def test_failed_cross_device_copy_leaves_no_partial_file(tmp_path, ops, monkeypatch):
    def broken_copy(src_file, dst_file):
        dst_file.write(b"partial")
        raise OSError(errno.ENOSPC, "No space left on device")

    monkeypatch.setattr(file_ops.os, "link", _link_fails_with(errno.EXDEV))
    monkeypatch.setattr(file_ops.shutil, "copyfileobj", broken_copy)
    source = tmp_path / "song.mp3"
    source.write_text("content")

    with pytest.raises(MusicSorterError) as excinfo:
        ops.move_file(source, tmp_path / "out")

    assert excinfo.value.kind is ErrorKind.FILE_PROCESSING_ERROR
    assert not (tmp_path / "out" / "song.mp3").exists()
    assert source.read_text() == "content"


def test_other_link_errors_are_processing_errors(tmp_path, ops, monkeypatch):
    def denied(src, dst):
        raise PermissionError(errno.EACCES, "Permission denied")

    monkeypatch.setattr(file_ops.os, "link", denied)
    source = tmp_path / "song.mp3"
    source.write_text("x")

    with pytest.raises(MusicSorterError) as excinfo:
        ops.move_file(source, tmp_path / "out")
    assert excinfo.value.kind is ErrorKind.FILE_PROCESSING_ERROR
    assert isinstance(excinfo.value.__cause__, PermissionError)
    assert source.exists()


def test_destination_created_during_move_is_kept(tmp_path, ops, monkeypatch):
    real_link = os.link

    def link_after_competitor(src, dst):
        with open(dst, "w") as f:
            f.write("other")
        real_link(src, dst)

    monkeypatch.setattr(file_ops.os, "link", link_after_competitor)
    source = tmp_path / "song.mp3"
    source.write_text("new")

    with pytest.raises(MusicSorterError) as excinfo:
        ops.move_file(source, tmp_path / "out")

    assert excinfo.value.kind is ErrorKind.FILE_PROCESSING_ERROR
    assert "destination already exists" in str(excinfo.value)
    assert (tmp_path / "out" / "song.mp3").read_text() == "other"
    assert source.read_text() == "new"


def test_destination_created_during_cross_device_move_is_kept(tmp_path, ops, monkeypatch):
    def competitor_then_exdev(src, dst):
        with open(dst, "w") as f:
            f.write("other")
        raise OSError(errno.EXDEV, "Invalid cross-device link")

    monkeypatch.setattr(file_ops.os, "link", competitor_then_exdev)
    source = tmp_path / "song.mp3"
    source.write_text("new")

    with pytest.raises(MusicSorterError) as excinfo:
        ops.move_file(source, tmp_path / "out")

    assert excinfo.value.kind is ErrorKind.FILE_PROCESSING_ERROR
    assert "destination already exists" in str(excinfo.value)
    assert (tmp_path / "out" / "song.mp3").read_text() == "other"
    assert source.read_text() == "new"
