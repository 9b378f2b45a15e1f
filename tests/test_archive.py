import io
import tarfile
import zipfile

from hotupdate.utils.archive import extract_archive


def _write_tar(path, members):
    with tarfile.open(path, "w:gz") as archive:
        for name, data in members.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            archive.addfile(info, io.BytesIO(data))


def test_extract_tar_with_tmp_suffix(tmp_path):
    archive_path = tmp_path / "bundle.tar.gz.tmp"
    _write_tar(archive_path, {"res/a.txt": b"alpha", "res/b.txt": b"beta"})

    members = extract_archive(archive_path, tmp_path / "out")

    assert sorted(members) == ["res/a.txt", "res/b.txt"]
    assert (tmp_path / "out" / "res" / "a.txt").read_bytes() == b"alpha"


def test_extract_zip(tmp_path):
    archive_path = tmp_path / "bundle.zip"
    with zipfile.ZipFile(archive_path, "w") as archive:
        archive.writestr("脚本/main.js", "cc.log('ok');")

    members = extract_archive(archive_path, tmp_path / "out")

    assert members == ["脚本/main.js"]
    assert (tmp_path / "out" / "脚本" / "main.js").exists()


def test_rejects_member_outside_target(tmp_path):
    archive_path = tmp_path / "evil.zip"
    with zipfile.ZipFile(archive_path, "w") as archive:
        archive.writestr("../escape.txt", "x")

    assert extract_archive(archive_path, tmp_path / "out") is None
    assert not (tmp_path / "escape.txt").exists()


def test_corrupt_archive_returns_none(tmp_path):
    archive_path = tmp_path / "broken.zip"
    archive_path.write_bytes(b"definitely not a zip")

    assert extract_archive(archive_path, tmp_path / "out") is None
