"""Tests for background import validation."""

import base64
import io

import openpyxl
import pytest

from django.core.cache import cache

from tooling.tasks import (
    CANCEL_KEY,
    is_import_cancelled,
    request_import_cancel,
    validate_import_file,
)

FAMILY_CSV = (
    "Family Name,Family Code,Type,Status\n"
    "Golf,GF-1,Body,active\n"
    "Polo,,Body,active\n"
)


@pytest.mark.django_db
class TestValidateImportFile:
    def test_returns_result_dict(self):
        result = validate_import_file.delay(FAMILY_CSV).get()
        assert result["file_type"] == "families"
        assert result["total_rows"] == 2
        assert result["successful_rows"] == 1
        assert result["error_rows"] == 1
        assert result["errors"] == ["Row 3: Family Code is required"]
        assert result["cancelled"] is False

    def test_cancelled_before_start(self):
        request_import_cancel("abc")
        result = validate_import_file.delay(FAMILY_CSV, token="abc").get()
        assert result["cancelled"] is True
        assert result["successful_rows"] == 0
        # The flag is cleared once the run finishes
        assert not is_import_cancelled("abc")

    def test_token_without_cancel(self):
        result = validate_import_file.delay(FAMILY_CSV, token="xyz").get()
        assert result["cancelled"] is False
        assert cache.get(CANCEL_KEY.format(token="xyz")) is None

    def test_xlsx_payload(self):
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.append(["ROB ID", "ROB Name", "Type", "Capacity", "Status"])
        ws.append(["R-1", "Cell 1", "MPR", 4, "active"])
        buffer = io.BytesIO()
        wb.save(buffer)
        payload = base64.b64encode(buffer.getvalue()).decode("ascii")

        result = validate_import_file.delay(payload, filename="robs.xlsx").get()

        assert result["file_type"] == "robs"
        assert result["successful_rows"] == 1

    def test_bad_base64(self):
        result = validate_import_file.delay("%%%", filename="robs.xlsx").get()
        assert result["failure"].startswith("Workbook content is not valid base64")

    def test_empty_file(self):
        result = validate_import_file.delay("").get()
        assert result["failure"] == "File is empty or could not be read"
