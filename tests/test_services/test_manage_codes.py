"""
VIP码命令行工具测试
"""

import csv
import io
import json
from datetime import timedelta

import pytest

from aiborn.core import database
from aiborn.models.code import utc_now
from aiborn.scripts import manage_codes


def test_parser_requires_known_type():
    with pytest.raises(SystemExit):
        manage_codes.build_parser().parse_args(["generate", "--count", "5", "--type", "GOLD"])


def test_parser_rejects_bad_datetime():
    with pytest.raises(SystemExit):
        manage_codes.build_parser().parse_args(
            ["generate", "--count", "5", "--type", "MEDIA", "--valid-until", "tomorrow"]
        )


@pytest.mark.asyncio
class TestManageCodes:
    """命令行子命令测试"""

    @pytest.fixture(autouse=True)
    def use_test_database(self, session_factory, monkeypatch):
        monkeypatch.setattr(database, "async_session_maker", session_factory)

    async def test_generate_json(self):
        args = manage_codes.build_parser().parse_args(
            ["generate", "--count", "4", "--type", "VIP_PREVIEW", "--max-redemptions", "2"]
        )

        output = json.loads(await manage_codes.run_generate(args))

        assert len(output) == 4
        assert all(item["type"] == "VIP_PREVIEW" for item in output)
        assert "validFrom" in output[0]

    async def test_generate_csv(self):
        args = manage_codes.build_parser().parse_args(
            ["generate", "--count", "2", "--type", "PARTNER", "--format", "csv",
             "--valid-until", "2099-01-01T00:00:00+00:00"]
        )

        rows = list(csv.reader(io.StringIO(await manage_codes.run_generate(args))))

        assert rows[0] == ["Code", "Type", "Valid From", "Valid Until"]
        assert [row[3] for row in rows[1:]] == ["2099-01-01T00:00:00+00:00"] * 2

    async def test_expire(self, code_factory):
        await code_factory(code="OLD234", valid_until=utc_now() - timedelta(days=2))

        assert await manage_codes.run_expire() == 1
        assert await manage_codes.run_expire() == 0
