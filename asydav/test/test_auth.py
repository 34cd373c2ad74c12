import base64
import asyncio
import pytest

from asydav.webdav.auth import StaticAuthenticator, parse_basic_authorization, DEFAULT_REALM
from asydav.webdav.errors import Unauthorized


def basic(username, password):
    return b'Basic ' + base64.b64encode(('%s:%s' % (username, password)).encode('utf-8'))


def test_parse_basic():
    assert parse_basic_authorization(basic('alice', 'secret')) == ('alice', 'secret')
    assert parse_basic_authorization(basic('alice', 'pa:ss:word')) == ('alice', 'pa:ss:word')
    assert parse_basic_authorization(basic('alice', '').decode()) == ('alice', '')


@pytest.mark.parametrize('header', [
    None,
    b'',
    b'Bearer abcdef',
    b'Basic',
    b'Basic !!!notbase64!!!',
    b'Basic ' + base64.b64encode(b'no-colon-here'),
    b'Basic ' + base64.b64encode(b'\xff\xfe:x'),
])
def test_parse_basic_malformed(header):
    with pytest.raises(Unauthorized):
        parse_basic_authorization(header)


def test_unauthorized_challenge():
    err = Unauthorized('My Realm')
    assert err.status_code == 401
    assert err.get_headers() == [('WWW-Authenticate', b'Basic realm="My Realm"')]


def test_static_authenticator():
    auth = StaticAuthenticator.from_strings(['alice:secret', 'bob:pa:ss'])
    assert auth.realm == DEFAULT_REALM
    assert asyncio.run(auth.authenticate(basic('alice', 'secret'))) == 'alice'
    assert asyncio.run(auth.authenticate(basic('bob', 'pa:ss'))) == 'bob'
    with pytest.raises(Unauthorized):
        asyncio.run(auth.authenticate(basic('alice', 'wrong')))
    with pytest.raises(Unauthorized):
        asyncio.run(auth.authenticate(basic('mallory', 'secret')))


def test_from_strings_invalid():
    with pytest.raises(ValueError):
        StaticAuthenticator.from_strings(['nocolon'])
    with pytest.raises(ValueError):
        StaticAuthenticator.from_strings([':password'])


def test_from_file(tmp_path):
    creds = tmp_path / 'users.txt'
    creds.write_text('# team accounts\n\nalice:secret\nbob:hunter2\n', encoding='utf-8')
    auth = StaticAuthenticator.from_file(str(creds), realm='Files')
    assert auth.credentials == {'alice': 'secret', 'bob': 'hunter2'}
    assert auth.realm == 'Files'
