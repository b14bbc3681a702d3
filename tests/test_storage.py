from unittest.mock import MagicMock

import pytest

from core.errors import StorageConfigError
from core.storage import LocalBlobStorage, S3BlobStorage, create_storage


def test_local_put_returns_public_url_and_overwrites(storage):
    url = storage.put('acme/x1-abc.jpg', b'first', 'image/jpeg')
    storage.put('acme/x1-abc.jpg', b'second', 'image/jpeg')

    assert url == 'https://cdn.example.com/equipment-images/acme/x1-abc.jpg'
    assert (storage.root / 'acme' / 'x1-abc.jpg').read_bytes() == b'second'


def test_local_put_without_overwrite_refuses_existing(storage):
    storage.put('acme/x1-abc.jpg', b'first', 'image/jpeg')

    with pytest.raises(FileExistsError):
        storage.put('acme/x1-abc.jpg', b'second', 'image/jpeg', overwrite=False)


def test_local_rejects_keys_outside_root(storage):
    with pytest.raises(ValueError):
        storage.put('../escape.jpg', b'x', 'image/jpeg')


def test_local_delete_is_quiet_for_missing_keys(storage):
    storage.delete('acme/never-stored.jpg')


def test_key_from_url_only_maps_own_urls(storage):
    assert storage.key_from_url('https://cdn.example.com/equipment-images/acme/x1.jpg') == 'acme/x1.jpg'
    assert storage.key_from_url('https://placehold.co/600x400') is None
    assert storage.key_from_url(None) is None


def test_local_default_public_url_is_file_uri(tmp_path):
    storage = LocalBlobStorage(root_dir=str(tmp_path / 'images'))

    url = storage.put('a/b.jpg', b'x', 'image/jpeg')

    assert url.startswith('file://')
    assert storage.key_from_url(url) == 'a/b.jpg'


def test_s3_put_and_delete_use_prefixed_keys():
    client = MagicMock()
    storage = S3BlobStorage(bucket='catalog', region='eu-west-1', prefix='equipment-images', client=client)

    url = storage.put('acme/x1.jpg', b'data', 'image/jpeg')
    storage.delete('acme/old.jpg')

    assert url == 'https://catalog.s3.eu-west-1.amazonaws.com/equipment-images/acme/x1.jpg'
    put_kwargs = client.put_object.call_args.kwargs
    assert put_kwargs['Bucket'] == 'catalog'
    assert put_kwargs['Key'] == 'equipment-images/acme/x1.jpg'
    assert put_kwargs['ContentType'] == 'image/jpeg'
    client.delete_object.assert_called_once_with(Bucket='catalog', Key='equipment-images/acme/old.jpg')
    assert storage.key_from_url(url) == 'acme/x1.jpg'


def test_s3_requires_bucket(monkeypatch):
    monkeypatch.setattr('config.settings.Settings.S3_BUCKET', '')

    with pytest.raises(StorageConfigError):
        S3BlobStorage(bucket=None, client=MagicMock())


def test_unknown_backend_is_a_setup_error():
    with pytest.raises(StorageConfigError):
        create_storage('ftp')
