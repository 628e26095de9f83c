"""
VIP码生成工具
生成易读的6位字母数字码，排除容易混淆的字符（0/O、1/I）
"""

import csv
import io
import logging
import secrets
from typing import List, Iterable, Set

from aiborn.models.code import CODE_LENGTH, GeneratedCode
from aiborn.repositories.code_repository import CodeRepository

logger = logging.getLogger(__name__)

CODE_CHARS = "23456789ABCDEFGHJKLMNPQRSTUVWXYZ"

CSV_HEADERS = ["Code", "Type", "Valid From", "Valid Until"]


class CodeGenerationError(Exception):
    """多次重试仍无法生成不重复的码"""


def generate_random_code(length: int = CODE_LENGTH) -> str:
    """生成随机码"""
    return "".join(secrets.choice(CODE_CHARS) for _ in range(length))


async def generate_unique_codes(
    code_repo: CodeRepository,
    count: int,
    max_attempts: int = 10
) -> List[str]:
    """
    批量生成不重复的码

    先在本批次内去重，再与数据库已有码比对，冲突部分重新生成。
    每轮只补生成冲突的数量，超过max_attempts轮仍有冲突则抛出CodeGenerationError。
    """
    accepted: List[str] = []
    seen: Set[str] = set()

    for attempt in range(max_attempts):
        needed = count - len(accepted)
        if needed <= 0:
            break

        batch: List[str] = []
        while len(batch) < needed:
            candidate = generate_random_code()
            if candidate not in seen:
                seen.add(candidate)
                batch.append(candidate)

        existing = await code_repo.find_existing_codes(batch)
        if existing:
            logger.info(f"生成的码与已有码冲突 {len(existing)} 个，第{attempt + 1}轮重新生成")
        accepted.extend(code for code in batch if code not in existing)

    if len(accepted) < count:
        raise CodeGenerationError(
            f"Failed to generate {count} unique codes after {max_attempts} attempts"
        )

    return accepted


def export_codes_to_csv(codes: Iterable[GeneratedCode]) -> str:
    """导出为CSV文本，无失效时间记为Never"""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for item in codes:
        writer.writerow([
            item.code,
            item.type.value,
            item.valid_from.isoformat(),
            item.valid_until.isoformat() if item.valid_until else "Never",
        ])
    return buffer.getvalue()
