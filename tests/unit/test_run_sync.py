import pytest
from scripts.run_sync import build_options, build_parser
from core.config import settings


def parse(*argv):
    return build_options(build_parser().parse_args(list(argv)))


def test_defaults_follow_settings():
    options = parse()
    assert options.limit == settings.SYNC_PAGE_SIZE
    assert options.max_pages == settings.SYNC_MAX_PAGES
    assert options.force_update is False
    assert options.use_checkpoints is True


def test_smoke_test_mode():
    options = parse("--test")
    assert options.limit == 5
    assert options.max_pages == 1

    assert parse("--test", "20").limit == 20


def test_backfill_and_explicit_overrides():
    assert parse("--backfill").max_pages == settings.BACKFILL_MAX_PAGES
    assert parse("--backfill", "--max-pages", "7").max_pages == 7


def test_flags():
    options = parse("--force", "--insiders", "--no-checkpoints", "--batch-size", "25")
    assert options.force_update is True
    assert options.sync_insiders is True
    assert options.use_checkpoints is False
    assert options.batch_size == 25


def test_limit_clamped_to_provider_cap():
    assert parse("--limit", "1000").limit == 250


def test_invalid_number_rejected():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--limit", "many"])
