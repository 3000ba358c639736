# SPDX-License-Identifier: MIT
"""Unit tests for the response envelope."""

import httpx
import pytest

from unistore.exceptions import BackendError, InvalidPathError, NotFoundError, StoragePermissionError
from unistore.response import StorageResponse, enveloped, failure, success


@pytest.mark.unit
def test_success_and_failure_helpers():
    ok = success([1, 2])
    bad = failure(NotFoundError("gone"))

    assert ok.ok and ok.result == [1, 2] and ok.error is None
    assert not bad.ok and bad.result is None
    assert bad.native_error is None


@pytest.mark.unit
def test_unwrap_raises_stored_error():
    with pytest.raises(NotFoundError, match="gone"):
        StorageResponse(error=NotFoundError("gone")).unwrap()
    assert StorageResponse(result=3).unwrap() == 3


@pytest.mark.unit
async def test_enveloped_wraps_result():
    @enveloped
    async def op(x):
        return x * 2

    assert await op(4) == StorageResponse(result=8)


@pytest.mark.unit
async def test_enveloped_keeps_storage_errors():
    err = InvalidPathError("bad path")

    @enveloped
    async def op():
        raise err

    response = await op()
    assert response.error is err


@pytest.mark.unit
@pytest.mark.parametrize(
    "native, expected",
    [
        (FileNotFoundError("x"), NotFoundError),
        (PermissionError("x"), StoragePermissionError),
        (IsADirectoryError("x"), BackendError),
        (httpx.ConnectError("refused"), BackendError),
    ],
)
async def test_enveloped_translates_native_errors(native, expected):
    @enveloped
    async def op():
        raise native

    response = await op()

    assert type(response.error) is expected
    assert response.native_error is native
    assert "op" in str(response.error)


@pytest.mark.unit
async def test_enveloped_propagates_programming_errors():
    @enveloped
    async def op():
        raise TypeError("bug")

    with pytest.raises(TypeError):
        await op()
