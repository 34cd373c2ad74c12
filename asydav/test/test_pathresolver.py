import os
import random
import pytest

from asydav.webdav.pathresolver import PathResolver, quote_href, display_name, join_logical, parent_logical
from asydav.webdav.errors import Forbidden


@pytest.mark.parametrize('target, expected', [
    (b'/', '.'),
    ('', '.'),
    ('/docs/file.txt', 'docs/file.txt'),
    ('/docs/./sub/../file.txt', 'docs/file.txt'),
    ('//docs//file.txt/', 'docs/file.txt'),
    ('/docs/file.txt?download=1#top', 'docs/file.txt'),
    ('/my%20notes/%C3%A9t%C3%A9.txt', 'my notes/été.txt'),
    ('/../../etc/passwd', 'etc/passwd'),
    ('/%2e%2e/%2E%2E/etc/passwd', 'etc/passwd'),
    ('/..%5c..%5cwindows', 'windows'),
    ('/a/../../..', '.'),
    ('http://localhost:8080/a/b', 'a/b'),
    ('/bad%FF.txt', 'bad\udcff.txt'),
])
def test_to_logical(target, expected):
    assert PathResolver.to_logical(target) == expected


@pytest.mark.parametrize('target', [
    '/a%00b',
    '/a/%00/../b',
])
def test_to_logical_rejects(target):
    with pytest.raises(Forbidden):
        PathResolver.to_logical(target)


def test_resolve_root(tmp_path):
    resolver = PathResolver(str(tmp_path))
    assert resolver.resolve(b'/') == (str(tmp_path), '/')
    assert resolver.resolve(b'/..') == (str(tmp_path), '/')


def test_resolve_nested(tmp_path):
    resolver = PathResolver(str(tmp_path))
    fs_path, logical = resolver.resolve(b'/a/b.txt')
    assert fs_path == os.path.join(str(tmp_path), 'a', 'b.txt')
    assert logical == '/a/b.txt'


def test_resolve_symlink_escape(tmp_path):
    root = tmp_path / 'root'
    outside = tmp_path / 'outside'
    root.mkdir()
    outside.mkdir()
    (outside / 'secret.txt').write_bytes(b'secret')
    os.symlink(str(outside), str(root / 'link'))

    resolver = PathResolver(str(root))
    with pytest.raises(Forbidden):
        resolver.resolve(b'/link/secret.txt')
    with pytest.raises(Forbidden):
        resolver.resolve(b'/link')


def test_resolve_symlink_inside_root(tmp_path):
    (tmp_path / 'real').mkdir()
    os.symlink(str(tmp_path / 'real'), str(tmp_path / 'alias'))
    resolver = PathResolver(str(tmp_path))
    fs_path, logical = resolver.resolve(b'/alias/x')
    assert fs_path == os.path.join(str(tmp_path), 'alias', 'x')
    assert logical == '/alias/x'


def test_resolve_random_traversal(tmp_path):
    root = str(tmp_path)
    resolver = PathResolver(root)
    segments = ['..', '.', 'a', 'b c', '%2e%2e', '%2E%2e', '..%2f', '%5c..', '', '...', '..\\..', '%252e%252e']
    rnd = random.Random(4242)
    for _ in range(2000):
        parts = [rnd.choice(segments) for _ in range(rnd.randint(1, 10))]
        target = '/' + rnd.choice(['/', '\\']).join(parts)
        try:
            fs_path, logical = resolver.resolve(target)
        except Forbidden:
            continue
        assert os.path.commonpath([root, fs_path]) == root, target
        assert logical.startswith('/')
        assert '..' not in logical.split('/'), target


def test_href_helpers():
    assert quote_href('/') == '/'
    assert quote_href('/a b/c.txt') == '/a%20b/c.txt'
    assert quote_href('/a', True) == '/a/'
    assert quote_href('/', True) == '/'
    assert join_logical('/', 'a') == '/a'
    assert join_logical('/a', 'b.txt') == '/a/b.txt'
    assert parent_logical('/a/b.txt') == '/a'
    assert parent_logical('/a') == '/'
    assert parent_logical('/') == '/'


@pytest.mark.parametrize('target, expected', [
    (b'/', True),
    (b'/a/', True),
    (b'/a/?x=1', True),
    (b'/a%2F', True),
    (b'/a', False),
    (b'/a/b.txt', False),
])
def test_names_collection(target, expected):
    assert PathResolver.names_collection(target) is expected


def test_undecodable_names():
    name = os.fsdecode(b'bad\xff.txt')
    assert quote_href('/' + name) == '/bad%FF.txt'
    assert display_name(name) == 'bad\ufffd.txt'
    assert PathResolver.to_logical(quote_href('/' + name)) == name
