"""Tests for staging and sequential upload of images."""

import pytest

from errors import PreviewError, TooLarge, UnsupportedType, UploadFailed
from tests.fixtures.media import MB, make_asset, url_for

LIMIT = 5_242_880


class TestStageAsset:
    @pytest.mark.parametrize("content_type", ["image/jpeg", "image/png", "image/jpg"])
    def test_accepts_supported_types(self, orchestrator, content_type):
        pending = orchestrator.stage_asset(make_asset(content_type=content_type))

        assert orchestrator.pending == [pending]
        assert pending.preview_url in orchestrator.previews

    @pytest.mark.parametrize("content_type", ["image/gif", "image/webp", "application/pdf", None])
    def test_rejects_other_types(self, orchestrator, preview_pool, content_type):
        with pytest.raises(UnsupportedType):
            orchestrator.stage_asset(make_asset(content_type=content_type))

        assert orchestrator.pending == []
        assert preview_pool.open_handles == []

    def test_size_limit_is_inclusive(self, orchestrator):
        orchestrator.stage_asset(make_asset(size=LIMIT))

        with pytest.raises(TooLarge) as excinfo:
            orchestrator.stage_asset(make_asset(size=LIMIT + 1))

        assert excinfo.value.limit == LIMIT
        assert len(orchestrator) == 1

    def test_six_megabyte_png_is_rejected_without_staging(self, orchestrator, preview_pool):
        with pytest.raises(TooLarge):
            orchestrator.stage_asset(make_asset(size=6 * MB, content_type="image/png"))

        assert orchestrator.pending == []
        assert preview_pool.open_handles == []

    def test_staging_order_is_preserved(self, orchestrator):
        names = ["a.jpg", "b.jpg", "c.jpg"]
        for name in names:
            orchestrator.stage_asset(make_asset(filename=name))

        assert [p.asset.filename for p in orchestrator.pending] == names


class TestRemoveAndClear:
    def test_remove_releases_preview(self, orchestrator, preview_pool):
        first = orchestrator.stage_asset(make_asset(filename="a.jpg"))
        second = orchestrator.stage_asset(make_asset(filename="b.jpg"))

        assert orchestrator.remove(first.preview_url) is True

        assert orchestrator.pending == [second]
        assert preview_pool.open_handles == [second.preview_url]

    def test_remove_by_token(self, orchestrator, preview_pool):
        pending = orchestrator.stage_asset(make_asset())
        token = pending.preview_url.rsplit("/", 1)[-1]

        assert orchestrator.remove(token) is True
        assert preview_pool.open_handles == []

    def test_remove_unknown_returns_false(self, orchestrator):
        assert orchestrator.remove("/previews/missing") is False

    def test_clear_releases_every_preview(self, orchestrator, preview_pool):
        for _ in range(3):
            orchestrator.stage_asset(make_asset())

        orchestrator.clear()

        assert orchestrator.pending == []
        assert preview_pool.open_handles == []

    def test_releasing_twice_is_an_error(self, orchestrator, preview_pool):
        pending = orchestrator.stage_asset(make_asset())
        orchestrator.remove(pending.preview_url)

        with pytest.raises(PreviewError):
            preview_pool.release(pending.preview_url)


class TestCommitAll:
    def test_returns_urls_in_staged_order(self, orchestrator, scripted_uploads):
        staged = [orchestrator.stage_asset(make_asset(filename=f"{i}.jpg")) for i in range(4)]

        urls = orchestrator.commit_all()

        assert urls == [url_for(n) for n in range(1, 5)]
        assert [a.filename for a in scripted_uploads.calls] == [p.asset.filename for p in staged]

    def test_stops_at_first_failure(self, orchestrator, scripted_uploads):
        scripted_uploads.fail_on = {2}
        for i in range(4):
            orchestrator.stage_asset(make_asset(filename=f"{i}.jpg"))

        with pytest.raises(UploadFailed) as excinfo:
            orchestrator.commit_all()

        assert len(scripted_uploads.calls) == 2
        assert excinfo.value.completed == 1
        assert excinfo.value.failed_index == 1
        assert [p.uploaded for p in orchestrator.pending] == [True, False, False, False]

    def test_retry_skips_assets_already_uploaded(self, orchestrator, scripted_uploads):
        scripted_uploads.fail_on = {2}
        orchestrator.stage_asset(make_asset(filename="a.jpg"))
        orchestrator.stage_asset(make_asset(filename="b.jpg"))
        with pytest.raises(UploadFailed):
            orchestrator.commit_all()

        urls = orchestrator.commit_all()

        assert [a.filename for a in scripted_uploads.calls] == ["a.jpg", "b.jpg", "b.jpg"]
        assert urls == [url_for(1), url_for(3)]

    def test_empty_staging_uploads_nothing(self, orchestrator, mock_media_store):
        assert orchestrator.commit_all() == []
        mock_media_store.upload.assert_not_called()
