"""
VIP码管理命令行工具

运行方式:
python -m aiborn.scripts.manage_codes generate --count 100 --type VIP_PREVIEW
python -m aiborn.scripts.manage_codes generate --count 50 --type PARTNER --max-redemptions 10 --format csv --output partner.csv
python -m aiborn.scripts.manage_codes expire
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from typing import List, Optional

from aiborn.core.database import init_database, close_database, session_scope
from aiborn.models.code import CODE_TYPE_LABELS, CodeType, GenerateCodesRequest, as_utc
from aiborn.repositories.code_repository import CodeRepository
from aiborn.repositories.entitlement_repository import EntitlementRepository
from aiborn.repositories.organization_repository import OrganizationRepository
from aiborn.services.code_generator import export_codes_to_csv
from aiborn.services.code_service import CodeService

logger = logging.getLogger(__name__)


def _parse_datetime(value: str) -> datetime:
    try:
        return as_utc(datetime.fromisoformat(value))
    except ValueError:
        raise argparse.ArgumentTypeError(f"无效的时间格式: {value}，请使用ISO 8601格式")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="AI-Born VIP码管理工具")
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="批量生成VIP码")
    generate.add_argument("--count", type=int, required=True, help="生成数量 (1-10000)")
    generate.add_argument(
        "--type",
        required=True,
        choices=[t.value for t in CodeType],
        help="码类型: " + ", ".join(f"{t.value}({label})" for t, label in CODE_TYPE_LABELS.items())
    )
    generate.add_argument("--description", help="描述")
    generate.add_argument("--max-redemptions", type=int, help="最大兑换次数，默认不限")
    generate.add_argument("--valid-from", type=_parse_datetime, help="生效时间 (ISO 8601)")
    generate.add_argument("--valid-until", type=_parse_datetime, help="失效时间 (ISO 8601)")
    generate.add_argument("--org-id", help="所属机构ID")
    generate.add_argument("--created-by", default="cli", help="创建人")
    generate.add_argument("--format", choices=["json", "csv"], default="json", help="输出格式")
    generate.add_argument("--output", help="输出文件，默认打印到标准输出")

    subparsers.add_parser("expire", help="将已过期的ACTIVE码置为EXPIRED")
    return parser


async def run_generate(args: argparse.Namespace) -> str:
    request = GenerateCodesRequest(
        count=args.count,
        type=CodeType(args.type),
        description=args.description,
        max_redemptions=args.max_redemptions,
        valid_from=args.valid_from,
        valid_until=args.valid_until,
        org_id=args.org_id,
        format=args.format
    )

    async with session_scope() as session:
        service = CodeService(
            CodeRepository(session),
            EntitlementRepository(session),
            OrganizationRepository(session)
        )
        codes = await service.generate_codes(request, created_by=args.created_by)

    logger.info(f"已生成 {len(codes)} 个 {request.type.value} 码")
    if request.format == "csv":
        return export_codes_to_csv(codes)
    return json.dumps(
        [code.model_dump(mode="json", by_alias=True) for code in codes],
        ensure_ascii=False,
        indent=2
    )


async def run_expire() -> int:
    async with session_scope() as session:
        return await CodeService(CodeRepository(session), EntitlementRepository(session)).expire_codes()


async def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    await init_database()
    try:
        if args.command == "generate":
            output = await run_generate(args)
            if args.output:
                with open(args.output, "w", encoding="utf-8") as f:
                    f.write(output)
                print(f"已写入 {args.output}")
            else:
                print(output)
        elif args.command == "expire":
            affected = await run_expire()
            print(f"已过期 {affected} 个码")
    finally:
        await close_database()
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    sys.exit(asyncio.run(main()))
