import pytest

from errors import PreviewError
from previews import PreviewPool
from tests.fixtures.media import make_asset


def test_create_get_release():
    pool = PreviewPool("/previews/")
    asset = make_asset(size=3)

    url = pool.create(asset)

    assert url.startswith("/previews/")
    assert pool.get(url) is asset
    assert pool.get(url.rsplit("/", 1)[-1]) is asset
    pool.release(url)
    assert pool.open_handles == []


def test_unknown_preview_raises():
    with pytest.raises(PreviewError):
        PreviewPool().get("/previews/nope")


def test_double_release_raises():
    pool = PreviewPool()
    url = pool.create(make_asset())
    pool.release(url)

    with pytest.raises(PreviewError):
        pool.release(url)
