# SPDX-License-Identifier: MIT
"""Unit tests for bucket operations over a local provider."""

import io

import pytest

from unistore.backends.local import STAGING_SUFFIX
from unistore.entries import StorageDirectory, StorageFile
from unistore.exceptions import InvalidPathError, NotFoundError, ResolutionError, StoragePermissionError

# ------------------------------------------------------------------
# put / read
# ------------------------------------------------------------------


@pytest.mark.unit
async def test_put_file_returns_uri(bucket, provider_root):
    response = await bucket.put_file("file01.txt", "Hello World!")

    assert response.ok
    assert response.result == "provider01://bucket01/file01.txt"
    assert (provider_root / "bucket01" / "file01.txt").read_text() == "Hello World!"


@pytest.mark.unit
async def test_put_file_returning_entity(bucket):
    f = (await bucket.put_file("dir/a.txt", io.BytesIO(b"stream"), returning=True)).unwrap()

    assert isinstance(f, StorageFile)
    assert f.get_storage_uri() == "provider01://bucket01/dir/a.txt"
    assert (await f.get_contents()).result == b"stream"


@pytest.mark.unit
@pytest.mark.parametrize("path", ["", "/", "dir/"])
async def test_put_file_rejects_directory_reference(bucket, path):
    response = await bucket.put_file(path, b"x")
    assert isinstance(response.error, InvalidPathError)


@pytest.mark.unit
async def test_put_file_escape_rejected(bucket, provider_root):
    response = await bucket.put_file("../bucket02/evil.txt", b"x")
    assert isinstance(response.error, InvalidPathError)
    assert not (provider_root / "bucket02" / "evil.txt").exists()


@pytest.mark.unit
async def test_put_file_into_other_bucket_by_uri(bucket, bucket2):
    assert (await bucket.put_file("provider01://bucket02/x.txt", b"x")).result == "provider01://bucket02/x.txt"
    assert (await bucket2.read_file("x.txt")).result == b"x"


@pytest.mark.unit
async def test_read_missing_file(bucket):
    response = await bucket.read_file("missing.txt")
    assert isinstance(response.error, NotFoundError)
    assert isinstance(response.native_error, FileNotFoundError)


@pytest.mark.unit
async def test_open_stream(tree):
    stream = (await tree.open_stream("file01.txt")).unwrap()
    assert b"".join([c async for c in stream]) == b"one"


@pytest.mark.unit
async def test_open_stream_on_directory_fails(tree):
    assert isinstance((await tree.open_stream("subdir01")).error, InvalidPathError)


@pytest.mark.unit
async def test_unresolvable_reference(bucket):
    response = await bucket.read_file("nowhere://x.txt")
    assert isinstance(response.error, ResolutionError)


# ------------------------------------------------------------------
# get / exists
# ------------------------------------------------------------------


@pytest.mark.unit
async def test_get_file_carries_metadata(tree):
    f = (await tree.get_file("file01.txt")).unwrap()

    assert f.name == "file01.txt"
    assert f.size == 3
    assert f.mime_type == "text/plain"
    assert f.get_absolute_path() == "/file01.txt"


@pytest.mark.unit
async def test_get_file_on_directory_is_not_found(tree):
    assert isinstance((await tree.get_file("subdir01")).error, NotFoundError)


@pytest.mark.unit
async def test_get_directory(tree):
    d = (await tree.get_directory("subdir01")).unwrap()
    assert isinstance(d, StorageDirectory)
    assert isinstance((await tree.get_directory("file01.txt")).error, NotFoundError)


@pytest.mark.unit
async def test_file_exists(tree):
    assert (await tree.file_exists("file01.txt")).result is True
    assert (await tree.file_exists("nope.txt")).result is False
    assert (await tree.file_exists("subdir01")).result is False

    f = (await tree.file_exists("file01.txt", returning=True)).result
    assert isinstance(f, StorageFile)
    assert f.get_storage_uri() == "provider01://bucket01/file01.txt"


# ------------------------------------------------------------------
# list
# ------------------------------------------------------------------


@pytest.mark.unit
async def test_list_files_non_recursive(tree):
    listing = (await tree.list_files()).unwrap()
    assert sorted(listing.entries) == ["provider01://bucket01/file01.txt", "provider01://bucket01/file02.md"]
    assert len(listing) == 2


@pytest.mark.unit
async def test_list_files_recursive(tree):
    listing = (await tree.list_files("/", recursive=True)).unwrap()
    assert len(listing) == 3
    assert "provider01://bucket01/subdir01/nested/deep.txt" in listing.entries


@pytest.mark.unit
async def test_list_files_with_pattern(tree):
    listing = (await tree.list_files(recursive=True, pattern="/subdir*/**/*.txt")).unwrap()
    assert listing.entries == ["provider01://bucket01/subdir01/nested/deep.txt"]


@pytest.mark.unit
async def test_list_pattern_is_relative_to_listed_directory(tree):
    listing = (await tree.list_files("subdir01", recursive=True, pattern="nested/*.txt")).unwrap()
    assert listing.entries == ["provider01://bucket01/subdir01/nested/deep.txt"]


@pytest.mark.unit
async def test_list_files_with_directories(tree):
    listing = (await tree.list_files(include_directories=True, returning=True)).unwrap()
    kinds = {e.name: type(e) for e in listing.entries}
    assert kinds == {"file01.txt": StorageFile, "file02.md": StorageFile, "subdir01": StorageDirectory}


@pytest.mark.unit
async def test_list_missing_directory(bucket):
    assert isinstance((await bucket.list_files("missing")).error, NotFoundError)


# ------------------------------------------------------------------
# copy / move
# ------------------------------------------------------------------


@pytest.mark.unit
async def test_copy_file_to_bucket_keeps_name(tree, bucket2):
    response = await tree.copy_file("file01.txt", "provider01://bucket02/")

    assert response.result == "provider01://bucket02/file01.txt"
    assert (await bucket2.read_file("file01.txt")).result == b"one"
    assert (await tree.file_exists("file01.txt")).result is True


@pytest.mark.unit
async def test_copy_file_with_new_name(tree):
    f = (await tree.copy_file("file01.txt", "copies/renamed.txt", returning=True)).unwrap()
    assert f.get_storage_uri() == "provider01://bucket01/copies/renamed.txt"


@pytest.mark.unit
async def test_move_file_relocates_entity(tree, bucket2):
    f = (await tree.get_file("file01.txt")).unwrap()

    response = await tree.move_file(f, "bucket02://moved/")

    assert response.result == "provider01://bucket02/moved/file01.txt"
    assert f.get_storage_uri() == "provider01://bucket02/moved/file01.txt"
    assert (await tree.file_exists("file01.txt")).result is False


@pytest.mark.unit
async def test_copy_missing_file(tree):
    assert isinstance((await tree.copy_file("missing.txt", "x.txt")).error, NotFoundError)


@pytest.mark.unit
async def test_copy_directory_with_copy_file_fails(tree):
    assert isinstance((await tree.copy_file("subdir01", "x")).error, InvalidPathError)


@pytest.mark.unit
async def test_copy_files_with_pattern(tree, bucket2):
    response = await tree.copy_files("/", "provider01://bucket02/multiplecopy/", "**")

    assert sorted(response.result) == [
        "provider01://bucket02/multiplecopy/file01.txt",
        "provider01://bucket02/multiplecopy/file02.md",
        "provider01://bucket02/multiplecopy/subdir01/nested/deep.txt",
    ]


@pytest.mark.unit
async def test_copy_files_no_match_is_empty_success(tree):
    response = await tree.copy_files("/", "dest/", "*.nothing")
    assert response.ok and response.result == []


@pytest.mark.unit
async def test_move_files_subset(tree):
    response = await tree.move_files("", "archive", "*.txt")

    assert response.result == ["provider01://bucket01/archive/file01.txt"]
    assert (await tree.file_exists("file01.txt")).result is False
    assert (await tree.file_exists("file02.md")).result is True


@pytest.mark.unit
async def test_batch_partial_failure_reports_successes(tree, mocker):
    from unistore import planner

    real_transfer = planner.transfer

    async def flaky(registry, src, dest, *, move):
        if src.path.name == "file02.md":
            raise OSError("flaky disk")
        return await real_transfer(registry, src, dest, move=move)

    mocker.patch.object(planner, "transfer", side_effect=flaky)

    response = await tree.copy_files("", "out", "*")

    assert response.ok
    assert response.result == ["provider01://bucket01/out/file01.txt"]


@pytest.mark.unit
async def test_batch_total_failure_reports_error(tree, mocker):
    from unistore import planner

    mocker.patch.object(planner, "transfer", side_effect=OSError("down"))

    response = await tree.copy_files("", "out", "*")

    assert not response.ok
    assert response.native_error is not None


# ------------------------------------------------------------------
# delete
# ------------------------------------------------------------------


@pytest.mark.unit
async def test_delete_file_is_idempotent(tree):
    assert (await tree.delete_file("file01.txt")).result is True
    assert (await tree.delete_file("file01.txt")).result is True
    assert (await tree.file_exists("file01.txt")).result is False


@pytest.mark.unit
async def test_delete_files_by_pattern(tree):
    response = await tree.delete_files("", "**/*.txt")

    assert sorted(response.result) == [
        "provider01://bucket01/file01.txt",
        "provider01://bucket01/subdir01/nested/deep.txt",
    ]
    remaining = (await tree.list_files(recursive=True)).unwrap().entries
    assert remaining == ["provider01://bucket01/file02.md"]


@pytest.mark.unit
async def test_delete_files_missing_directory(bucket):
    assert (await bucket.delete_files("missing")).result == []


@pytest.mark.unit
async def test_delete_below_a_file_is_idempotent(tree, provider_root):
    assert (await tree.delete_file("file01.txt/child.txt")).result is True
    assert (await tree.file_exists("file01.txt/child.txt")).result is False
    assert (provider_root / "bucket01" / "file01.txt").read_bytes() == b"one"


@pytest.mark.unit
async def test_delete_files_on_a_file_path(tree, provider_root):
    assert (await tree.delete_files("file01.txt", "**")).result == []
    assert (provider_root / "bucket01" / "file01.txt").exists()


# ------------------------------------------------------------------
# directories
# ------------------------------------------------------------------


@pytest.mark.unit
async def test_make_directory(bucket, provider_root):
    d = (await bucket.make_directory("a/b/c", returning=True)).unwrap()
    assert isinstance(d, StorageDirectory)
    assert (provider_root / "bucket01" / "a" / "b" / "c").is_dir()


@pytest.mark.unit
async def test_empty_directory_keeps_directory(tree, provider_root):
    assert (await tree.empty_directory("subdir01")).result is True
    assert (provider_root / "bucket01" / "subdir01").is_dir()
    assert list((provider_root / "bucket01" / "subdir01").iterdir()) == []


@pytest.mark.unit
async def test_delete_directory(tree, provider_root):
    assert (await tree.delete_directory("subdir01")).result is True
    assert not (provider_root / "bucket01" / "subdir01").exists()
    assert (await tree.delete_directory("subdir01")).result is True


@pytest.mark.unit
async def test_delete_bucket_root_empties_bucket(tree, provider_root):
    assert (await tree.delete_directory("/")).result is True
    assert (provider_root / "bucket01").is_dir()
    assert list((provider_root / "bucket01").iterdir()) == []


@pytest.mark.unit
async def test_remove_empty_directories(bucket, provider_root):
    await bucket.make_directory("empty/deeper")
    await bucket.put_file("full/keep.txt", b"x")
    await bucket.make_directory("full/empty")

    assert (await bucket.remove_empty_directories()).result is True

    root = provider_root / "bucket01"
    assert not (root / "empty").exists()
    assert not (root / "full" / "empty").exists()
    assert (root / "full" / "keep.txt").exists()
    assert root.is_dir()


@pytest.mark.unit
async def test_remove_empty_directories_keeps_staged_upload(bucket, provider_root):
    await bucket.make_directory("pending")
    await bucket.make_directory("empty")
    staged = provider_root / "bucket01" / "pending" / f"a.txt{STAGING_SUFFIX}"
    staged.write_bytes(b"partial")

    assert (await bucket.remove_empty_directories()).result is True

    assert staged.exists()
    assert not (provider_root / "bucket01" / "empty").exists()


@pytest.mark.unit
async def test_copy_directory(tree, bucket2):
    response = await tree.copy_directory("subdir01", "provider01://bucket02/copied")

    assert response.result == "provider01://bucket02/copied"
    assert (await bucket2.read_file("copied/nested/deep.txt")).result == b"deep"
    assert (await tree.file_exists("subdir01/nested/deep.txt")).result is True


@pytest.mark.unit
async def test_move_directory(tree, provider_root):
    response = await tree.move_directory("subdir01", "renamed")

    assert response.ok
    assert (await tree.read_file("renamed/nested/deep.txt")).result == b"deep"
    assert not (provider_root / "bucket01" / "subdir01").exists()


@pytest.mark.unit
async def test_copy_directory_into_itself_fails(tree):
    response = await tree.copy_directory("subdir01", "subdir01/inner")
    assert isinstance(response.error, InvalidPathError)


# ------------------------------------------------------------------
# access mode / paths
# ------------------------------------------------------------------


@pytest.mark.unit
async def test_readonly_bucket_rejects_writes(provider):
    ro = (await provider.add_bucket("ro", {"mode": "0444"})).unwrap()

    assert ro.can_read() and not ro.can_write()
    assert isinstance((await ro.put_file("a.txt", b"x")).error, StoragePermissionError)
    assert isinstance((await ro.delete_file("a.txt")).error, StoragePermissionError)
    assert (await ro.list_files()).ok


@pytest.mark.unit
async def test_copy_into_readonly_bucket_rejected(tree, provider):
    (await provider.add_bucket("ro", {"mode": "0444"})).unwrap()
    response = await tree.copy_file("file01.txt", "ro://")
    assert isinstance(response.error, StoragePermissionError)


@pytest.mark.unit
async def test_native_path(tree, provider_root):
    path = (await tree.get_native_path("file01.txt")).result
    assert path == str(provider_root.resolve() / "bucket01" / "file01.txt")


@pytest.mark.unit
async def test_public_url(registry, tmp_path):
    provider = await registry.add_provider(
        "cdn", {"type": "fs", "root": str(tmp_path / "cdn"), "url": "https://cdn.example.com/"}
    )
    bucket = (await provider.add_bucket("media")).unwrap()

    assert (await bucket.get_public_url("a b.txt")).result == "https://cdn.example.com/media/a%20b.txt"


@pytest.mark.unit
async def test_public_url_without_base(tree):
    assert (await tree.get_public_url("file01.txt")).result is None


# ------------------------------------------------------------------
# lifecycle
# ------------------------------------------------------------------


@pytest.mark.unit
async def test_destroyed_bucket_reports_not_found(tree, provider):
    assert (await tree.destroy()).result is True

    assert isinstance((await tree.read_file("file01.txt")).error, NotFoundError)
    assert isinstance((await tree.destroy()).error, NotFoundError)
    assert not provider.has_bucket("bucket01")


@pytest.mark.unit
async def test_stale_bucket_after_name_reuse(tree, provider):
    (await tree.destroy()).unwrap()
    (await provider.add_bucket("bucket01")).unwrap()

    assert isinstance((await tree.list_files()).error, NotFoundError)


@pytest.mark.unit
async def test_destroyed_bucket_cannot_reach_other_buckets(tree, bucket2, provider_root):
    (await bucket2.put_file("a.txt", b"a")).unwrap()
    (await tree.destroy()).unwrap()

    assert isinstance((await tree.put_file("provider01://bucket02/x.txt", b"x")).error, NotFoundError)
    assert isinstance((await tree.read_file("provider01://bucket02/a.txt")).error, NotFoundError)
    copied = await tree.copy_file("provider01://bucket02/a.txt", "provider01://bucket02/b.txt")
    assert isinstance(copied.error, NotFoundError)
    moved = await tree.move_files("provider01://bucket02/", "provider01://bucket02/moved/")
    assert isinstance(moved.error, NotFoundError)
    copied_dir = await tree.copy_directory("provider01://bucket02/", "provider01://bucket02/full")
    assert isinstance(copied_dir.error, NotFoundError)

    root = provider_root / "bucket02"
    assert sorted(p.name for p in root.iterdir()) == ["a.txt"]


@pytest.mark.unit
async def test_copy_file_with_bucket_shorthand(tree, bucket2):
    response = await tree.copy_file("/file01.txt", "bucket02://file_copy.txt")

    assert response.result == "provider01://bucket02/file_copy.txt"
    assert (await tree.file_exists("file01.txt")).result is True
    assert (await bucket2.file_exists("file_copy.txt")).result is True


@pytest.mark.unit
async def test_copy_directory_preserves_file_count(tree, bucket2):
    before = len((await tree.list_files("", recursive=True)).unwrap())

    (await tree.copy_directory("/", "provider01://bucket02/full")).unwrap()

    assert len((await bucket2.list_files("full", recursive=True)).unwrap()) == before == 3
    assert len((await tree.list_files("", recursive=True)).unwrap()) == before
