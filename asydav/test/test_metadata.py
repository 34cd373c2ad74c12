import os
import asyncio
import pytest

from asydav.webdav.metadata import Resource, compute_etag, format_http_date, format_iso_date, stat_resource, list_children
from asydav.webdav.errors import NotFound, ServerError
from asydav.webdav.pathresolver import PathResolver


def test_compute_etag():
    etag = compute_etag(1700000000000000000, 12)
    assert etag.startswith('"') and etag.endswith('"')
    assert len(etag) == 34
    assert etag == compute_etag(1700000000000000000, 12)
    assert etag != compute_etag(1700000000000000001, 12)
    assert etag != compute_etag(1700000000000000000, 13)


def test_date_formats():
    assert format_http_date(0) == 'Thu, 01 Jan 1970 00:00:00 GMT'
    assert format_iso_date(0) == '1970-01-01T00:00:00Z'
    assert format_iso_date(1700000000) == '2023-11-14T22:13:20Z'


def test_stat_file(tmp_path):
    p = tmp_path / 'hello.txt'
    p.write_bytes(b'hello')
    res = asyncio.run(stat_resource(str(p)))
    st = os.stat(str(p))
    assert res.name == 'hello.txt'
    assert res.is_collection is False
    assert res.size == 5
    assert res.etag == compute_etag(st.st_mtime_ns, st.st_size)
    assert res.get_content_type() == 'application/octet-stream'


def test_stat_collection(tmp_path):
    (tmp_path / 'sub').mkdir()
    res = asyncio.run(stat_resource(str(tmp_path / 'sub')))
    assert res.is_collection is True
    assert res.size == 0
    assert res.get_content_type() == 'httpd/unix-directory'


def test_stat_missing(tmp_path):
    with pytest.raises(NotFound):
        asyncio.run(stat_resource(str(tmp_path / 'nope')))
    (tmp_path / 'file').write_bytes(b'')
    with pytest.raises(NotFound):
        asyncio.run(stat_resource(str(tmp_path / 'file' / 'below')))


def test_etag_tracks_mtime_and_size(tmp_path):
    p = tmp_path / 'data.bin'
    p.write_bytes(b'abc')
    os.utime(str(p), ns=(1_000_000_000, 1_000_000_000))
    first = asyncio.run(stat_resource(str(p))).etag

    os.utime(str(p), ns=(1_000_000_000, 1_000_000_000))
    assert asyncio.run(stat_resource(str(p))).etag == first

    os.utime(str(p), ns=(2_000_000_000, 2_000_000_000))
    second = asyncio.run(stat_resource(str(p))).etag
    assert second != first

    p.write_bytes(b'abcd')
    os.utime(str(p), ns=(2_000_000_000, 2_000_000_000))
    assert asyncio.run(stat_resource(str(p))).etag != second


def test_list_children_sorted(tmp_path):
    for name in ['b.txt', 'a.txt', 'c']:
        if name == 'c':
            (tmp_path / name).mkdir()
        else:
            (tmp_path / name).write_bytes(name.encode())
    children = asyncio.run(list_children(str(tmp_path)))
    assert [c.name for c in children] == ['a.txt', 'b.txt', 'c']
    assert [c.is_collection for c in children] == [False, False, True]
    assert all(isinstance(c, Resource) for c in children)


def test_list_children_empty(tmp_path):
    assert asyncio.run(list_children(str(tmp_path))) == []


def deny_stat(monkeypatch, basename):
    real_stat = os.stat

    def fake_stat(path, *args, **kwargs):
        if os.path.basename(path) == basename:
            raise PermissionError(13, 'Permission denied', path)
        return real_stat(path, *args, **kwargs)
    monkeypatch.setattr(os, 'stat', fake_stat)


def test_stat_permission_error(tmp_path, monkeypatch):
    (tmp_path / 'locked.txt').write_bytes(b'x')
    deny_stat(monkeypatch, 'locked.txt')
    with pytest.raises(ServerError):
        asyncio.run(stat_resource(str(tmp_path / 'locked.txt')))


def test_list_children_one_bad_child(tmp_path, monkeypatch):
    for name in ['a.txt', 'locked.txt', 'z.txt']:
        (tmp_path / name).write_bytes(b'x')
    deny_stat(monkeypatch, 'locked.txt')
    with pytest.raises(ServerError):
        asyncio.run(list_children(str(tmp_path)))


def test_list_children_skips_escaping_symlinks(tmp_path):
    root = tmp_path / 'root'
    root.mkdir()
    (tmp_path / 'outside.bin').write_bytes(b'x' * 1000)
    (root / 'inside.txt').write_bytes(b'in')
    os.symlink(str(tmp_path / 'outside.bin'), str(root / 'escape'))
    os.symlink(str(root / 'inside.txt'), str(root / 'alias'))
    os.symlink(str(root / 'gone'), str(root / 'dangling'))

    resolver = PathResolver(str(root))
    children = asyncio.run(list_children(str(root), resolver))
    assert [c.name for c in children] == ['alias', 'inside.txt']
    assert children[0].size == 2

    # without a resolver only the dangling link is dropped
    children = asyncio.run(list_children(str(root)))
    assert [c.name for c in children] == ['alias', 'escape', 'inside.txt']
