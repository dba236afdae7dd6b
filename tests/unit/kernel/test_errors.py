from __future__ import annotations

import pytest

from contact_identity.kernel.errors import (
    INTERNAL_ERROR_MESSAGE,
    MISSING_SIGNAL_MESSAGE,
    IdentityServiceError,
    StoreError,
    TransactionConflictError,
    ValidationError,
)


def test_error_code_must_be_dotted_lowercase():
    with pytest.raises(ValueError):
        IdentityServiceError(code="Bad Code", message="nope")


def test_validation_error_defaults():
    error = ValidationError(meta={"reason": "missing_signal"})

    assert error.status_code == 400
    assert error.code == "request.validation_error"
    assert error.to_public_dict() == {"error": MISSING_SIGNAL_MESSAGE}


def test_store_error_hides_detail_from_clients():
    error = StoreError("relation \"contact\" does not exist", meta={"sqlstate": "42P01"})

    assert error.status_code == 500
    assert error.to_public_dict() == {"error": INTERNAL_ERROR_MESSAGE}
    assert str(error) == "relation \"contact\" does not exist"
    assert error.meta == {"sqlstate": "42P01"}


def test_transaction_conflict_is_a_store_error():
    error = TransactionConflictError()

    assert isinstance(error, StoreError)
    assert error.code == "store.conflict"
    assert error.to_public_dict() == {"error": INTERNAL_ERROR_MESSAGE}


def test_meta_is_copied():
    meta = {"reason": "x"}
    error = ValidationError(meta=meta)
    meta["reason"] = "y"

    assert error.meta == {"reason": "x"}
