# -*- coding: utf-8 -*-
import errno
import io
import os
import tarfile
import zipfile

import pytest

from bestest import unpacker
from bestest.judgeconfig import Config, OrderBy
from bestest.pool import WorkerPool
from bestest.unpacker import UnpackError, UnpackErrorKind


@pytest.fixture
def dirs(tmp_path):
    target = tmp_path / 'target'
    temp_root = tmp_path / 'work'
    target.mkdir()
    temp_root.mkdir()
    return target, temp_root


def unpack_error(path, config, temp_root):
    with pytest.raises(UnpackError) as info:
        unpacker.unpack(path, config, temp_root)
    return info.value


def test_extension_of():
    assert unpacker.extension_of('a.java') == 'java'
    assert unpacker.extension_of('a.b.TAR.GZ') == 'tar.gz'
    assert unpacker.extension_of('noext') is None


def test_copy_loose_file(dirs):
    target, temp_root = dirs
    src = target / 'alice_1_01_Main.java'
    src.write_text('class Main {}\n')

    workspace = unpacker.unpack(src, Config(), temp_root)
    assert workspace == temp_root / 'alice'
    assert (workspace / '01_Main.java').read_text() == 'class Main {}\n'


def test_copy_uses_key_without_filename(dirs):
    target, temp_root = dirs
    src = target / 's42.py'
    src.write_text('print(1)\n')

    workspace = unpacker.unpack(src, Config(format='{id}.{extension}', orderby=OrderBy.ID), temp_root)
    assert workspace == temp_root / 's42'
    assert (workspace / 's42.py').is_file()


def test_orderby_id_groups_by_id(dirs):
    target, temp_root = dirs
    config = Config(format='{name}_{id}_{filename}.{extension}', orderby=OrderBy.ID)
    (target / 'alice_7_Main.java').write_text('a')
    (target / 'alice_7_Helper.java').write_text('b')

    pool = WorkerPool(2)
    results = unpacker.unpack_all(target, config, temp_root, pool)
    assert results == [temp_root / '7', temp_root / '7']
    assert sorted(os.listdir(temp_root / '7')) == ['Helper.java', 'Main.java']


def test_missing_key_is_file_format(dirs):
    target, temp_root = dirs
    src = target / 'foo.java'
    src.write_text('')
    err = unpack_error(src, Config(format='{filename}.{extension}'), temp_root)
    assert err.kind is UnpackErrorKind.FILE_FORMAT


def test_no_match_is_ignored(dirs):
    target, temp_root = dirs
    src = target / 'README.txt'
    src.write_text('hello')
    err = unpack_error(src, Config(), temp_root)
    assert err.kind is UnpackErrorKind.IGNORE
    assert err.ignored
    assert os.listdir(temp_root) == []


def test_unknown_extension_is_ignored(dirs):
    target, temp_root = dirs
    src = target / 'alice_1_Main.docx'
    src.write_text('')
    assert unpack_error(src, Config(), temp_root).kind is UnpackErrorKind.IGNORE


def test_config_files_are_ignored(dirs):
    target, temp_root = dirs
    for name in ['alice_1_config.toml', 'alice_1_config.json']:
        src = target / name
        src.write_text('{}')
        assert unpack_error(src, Config(), temp_root).kind is UnpackErrorKind.IGNORE


def test_directory_is_ignored(dirs):
    target, temp_root = dirs
    sub = target / 'alice_1_dir.zip'
    sub.mkdir()
    assert unpack_error(sub, Config(), temp_root).kind is UnpackErrorKind.IGNORE


def test_no_extension_executable(dirs):
    target, temp_root = dirs
    config = Config(format='{name}_{id}')
    src = target / 'bob_2'
    src.write_text('#!/bin/sh\n')
    src.chmod(0o755)
    assert unpack_error(src, config, temp_root).kind is UnpackErrorKind.EXECUTABLE

    src.chmod(0o644)
    assert unpack_error(src, config, temp_root).kind is UnpackErrorKind.FILE_TYPE


def test_extract_zip(dirs):
    target, temp_root = dirs
    archive = target / 'carol_3_project.zip'
    with zipfile.ZipFile(archive, 'w') as zf:
        zf.writestr('src/Main.java', 'class Main {}\n')
        zf.writestr('src/util/Helper.java', 'class Helper {}\n')

    workspace = unpacker.unpack(archive, Config(), temp_root)
    assert workspace == temp_root / 'carol'
    assert (workspace / 'src' / 'Main.java').read_text() == 'class Main {}\n'
    assert (workspace / 'src' / 'util' / 'Helper.java').is_file()


def test_extract_tar_gz(dirs):
    target, temp_root = dirs
    archive = target / 'dave_4_project.tar.gz'
    data = b'print(input())\n'
    with tarfile.open(archive, 'w:gz') as tf:
        info = tarfile.TarInfo('main.py')
        info.size = len(data)
        tf.addfile(info, io.BytesIO(data))

    workspace = unpacker.unpack(archive, Config(), temp_root)
    assert (workspace / 'main.py').read_bytes() == data


def test_corrupt_archive(dirs):
    target, temp_root = dirs
    archive = target / 'erin_5_project.zip'
    archive.write_bytes(b'this is not a zip file')
    assert unpack_error(archive, Config(), temp_root).kind is UnpackErrorKind.ZIP_PROBLEM


def test_reunpack_is_idempotent(dirs):
    target, temp_root = dirs
    src = target / 'alice_1_Main.java'
    src.write_text('class Main {}\n')
    archive = target / 'bob_2_sub.zip'
    with zipfile.ZipFile(archive, 'w') as zf:
        zf.writestr('Main.java', 'class Main {}\n')

    first = [unpacker.unpack(p, Config(), temp_root) for p in (src, archive)]
    second = [unpacker.unpack(p, Config(), temp_root) for p in (src, archive)]
    assert first == second
    assert (temp_root / 'alice' / 'Main.java').read_text() == 'class Main {}\n'
    assert (temp_root / 'bob' / 'Main.java').read_text() == 'class Main {}\n'


def test_collision_with_different_content(dirs):
    target, temp_root = dirs
    src = target / 'alice_1_Main.java'
    src.write_text('class Main {}\n')
    unpacker.unpack(src, Config(), temp_root)

    src.write_text('class Main { int x; }\n')
    err = unpack_error(src, Config(), temp_root)
    assert err.kind is UnpackErrorKind.OS
    assert err.errno == errno.EEXIST
    assert (temp_root / 'alice' / 'Main.java').read_text() == 'class Main {}\n'


def test_concurrent_collision_never_overwrites(tmp_path):
    for trial in range(30):
        target = tmp_path / f'target{trial}'
        temp_root = tmp_path / f'work{trial}'
        target.mkdir()
        temp_root.mkdir()
        contents = {'alice_1_Main.java': b'A' * 500000, 'alice_2_Main.java': b'B' * 500000}
        for name, data in contents.items():
            (target / name).write_bytes(data)

        results = unpacker.unpack_all(target, Config(), temp_root, WorkerPool(4))
        routed = [r for r in results if not isinstance(r, UnpackError)]
        failed = [r for r in results if isinstance(r, UnpackError)]
        assert routed == [temp_root / 'alice']
        assert len(failed) == 1
        assert failed[0].errno == errno.EEXIST
        winner = ({'alice_1_Main.java', 'alice_2_Main.java'} - {failed[0].path.name}).pop()
        assert (temp_root / 'alice' / 'Main.java').read_bytes() == contents[winner]


def test_unpack_all_mixed(dirs):
    target, temp_root = dirs
    (target / 'alice_1_Main.java').write_text('class Main {}\n')
    (target / 'bob_2_main.py').write_text('print(1)\n')
    (target / 'notes.txt').write_text('not a submission')
    (target / 'carol_3_broken.zip').write_bytes(b'garbage')

    results = unpacker.unpack_all(target, Config(), temp_root, WorkerPool(3))
    assert len(results) == 4
    workspaces = sorted(r for r in results if not isinstance(r, UnpackError))
    assert workspaces == [temp_root / 'alice', temp_root / 'bob']
    kinds = sorted(r.kind.value for r in results if isinstance(r, UnpackError))
    assert kinds == ['Ignore', 'ZipProblem']


def test_unpack_all_single_file_root(dirs):
    target, temp_root = dirs
    src = target / 'alice_1_Main.java'
    src.write_text('class Main {}\n')
    assert unpacker.unpack_all(src, Config(), temp_root, WorkerPool(1)) == [temp_root / 'alice']


def test_unpack_all_missing_root(dirs):
    target, temp_root = dirs
    results = unpacker.unpack_all(target / 'nope', Config(), temp_root, WorkerPool(1))
    assert len(results) == 1
    assert results[0].kind is UnpackErrorKind.OS
    assert results[0].errno == errno.ENOENT


def test_unpack_all_warns_about_missing_key_placeholder(dirs, caplog):
    target, temp_root = dirs
    (target / 's1.py').write_text('print(1)\n')
    config = Config(format='s{num}.{extension}')
    with caplog.at_level('WARNING', logger='bestest.unpacker'):
        results = unpacker.unpack_all(target, config, temp_root, WorkerPool(1))
    assert 'grouped by {name}' in caplog.text
    assert results[0].kind is UnpackErrorKind.FILE_FORMAT
