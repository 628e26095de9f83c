"""
VIP码生成工具测试
"""

import csv
import io
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from aiborn.models.code import CodeType, GeneratedCode, is_valid_code_format
from aiborn.repositories.code_repository import CodeRepository
from aiborn.services import code_generator
from aiborn.services.code_generator import (
    CODE_CHARS,
    CodeGenerationError,
    export_codes_to_csv,
    generate_random_code,
    generate_unique_codes,
)


def test_random_code_uses_unambiguous_alphabet():
    """测试随机码只包含易读字符"""
    for _ in range(200):
        code = generate_random_code()
        assert len(code) == 6
        assert is_valid_code_format(code)
        assert set(code) <= set(CODE_CHARS)
        assert not set(code) & {"0", "O", "1", "I"}


@pytest.mark.asyncio
class TestGenerateUniqueCodes:
    """批量生成不重复码测试"""

    async def test_generates_requested_count(self):
        repo = AsyncMock(spec=CodeRepository)
        repo.find_existing_codes.return_value = set()

        codes = await generate_unique_codes(repo, 50)

        assert len(codes) == 50
        assert len(set(codes)) == 50
        repo.find_existing_codes.assert_called_once()

    async def test_regenerates_only_conflicts(self, monkeypatch):
        """测试与已有码冲突时只补生成冲突数量"""
        sequence = iter(["AAA222", "BBB333", "CCC444", "DDD555"])
        monkeypatch.setattr(code_generator, "generate_random_code", lambda: next(sequence))
        repo = AsyncMock(spec=CodeRepository)
        repo.find_existing_codes.side_effect = [{"BBB333"}, set()]

        codes = await generate_unique_codes(repo, 3)

        assert codes == ["AAA222", "CCC444", "DDD555"]
        second_batch = repo.find_existing_codes.call_args_list[1].args[0]
        assert second_batch == ["DDD555"]

    async def test_deduplicates_within_batch(self, monkeypatch):
        """测试批次内重复的候选码被跳过"""
        sequence = iter(["AAA222", "AAA222", "BBB333"])
        monkeypatch.setattr(code_generator, "generate_random_code", lambda: next(sequence))
        repo = AsyncMock(spec=CodeRepository)
        repo.find_existing_codes.return_value = set()

        assert await generate_unique_codes(repo, 2) == ["AAA222", "BBB333"]

    async def test_gives_up_after_max_attempts(self):
        """测试码空间饱和时抛出异常"""
        repo = AsyncMock(spec=CodeRepository)
        repo.find_existing_codes.side_effect = lambda batch: set(batch)

        with pytest.raises(CodeGenerationError):
            await generate_unique_codes(repo, 5, max_attempts=3)
        assert repo.find_existing_codes.call_count == 3


def test_export_codes_to_csv():
    """测试CSV导出格式"""
    valid_from = datetime(2025, 1, 1, tzinfo=timezone.utc)
    codes = [
        GeneratedCode(id="1", code="AAA222", type=CodeType.PARTNER, valid_from=valid_from),
        GeneratedCode(
            id="2",
            code="BBB333",
            type=CodeType.MEDIA,
            valid_from=valid_from,
            valid_until=datetime(2025, 6, 30, tzinfo=timezone.utc)
        ),
    ]

    rows = list(csv.reader(io.StringIO(export_codes_to_csv(codes))))

    assert rows[0] == ["Code", "Type", "Valid From", "Valid Until"]
    assert rows[1] == ["AAA222", "PARTNER", "2025-01-01T00:00:00+00:00", "Never"]
    assert rows[2] == ["BBB333", "MEDIA", "2025-01-01T00:00:00+00:00", "2025-06-30T00:00:00+00:00"]
