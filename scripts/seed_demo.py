from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass
from uuid import uuid4

from sqlalchemy import select

from docanalyzer.domain.models import Document, User
from docanalyzer.persistence.db import SessionLocal
from docanalyzer.persistence.repos import documents as documents_repo
from docanalyzer.providers.analysis.factory import get_analyzer
from docanalyzer.providers.extraction.base import get_extractor
from docanalyzer.services.analysis.pipeline import run_analysis_job
from docanalyzer.services.auth.passwords import hash_password
from docanalyzer.services.storage import save_upload


DEMO_EMAIL = "demo@example.com"
DEMO_PASSWORD = "demo-password"
DEMO_NAME = "Demo User"


@dataclass(frozen=True)
class DemoDocument:
    file_name: str
    text: str


def build_demo_documents() -> tuple[DemoDocument, ...]:
    # Small plain-text contracts so the mock analyzer has something to summarize.
    return (
        DemoDocument(
            file_name="lease-agreement.txt",
            text=(
                "The tenant shall pay rent on the first day of each month. "
                "Late payments incur a fee of 10% per week. The landlord may "
                "terminate the lease with seven days notice."
            ),
        ),
        DemoDocument(
            file_name="service-contract.txt",
            text=(
                "The provider offers the service as is, without warranty. "
                "Liability is limited to fees paid in the prior month. "
                "The agreement renews automatically unless cancelled in writing."
            ),
        ),
    )


async def _ensure_demo_user() -> User:
    async with SessionLocal() as session:
        result = await session.execute(select(User).where(User.email == DEMO_EMAIL))
        user = result.scalar_one_or_none()
        if user is None:
            user = User(
                id=uuid4().hex,
                email=DEMO_EMAIL,
                name=DEMO_NAME,
                password_hash=hash_password(DEMO_PASSWORD),
                is_verified=True,
            )
            session.add(user)
            await session.commit()
        return user


async def seed_demo() -> int:
    # Use the shared async session factory so env config matches the API container.
    user = await _ensure_demo_user()
    async with SessionLocal() as session:
        existing = await session.execute(
            select(Document.id).where(Document.owner_id == user.id).limit(1)
        )
        if existing.scalar_one_or_none() is not None:
            print("Demo documents already seeded; skipping.")
            return 0

    document_ids: list[str] = []
    for demo in build_demo_documents():
        document_id = uuid4().hex
        body = demo.text.encode("utf-8")
        storage_path = await save_upload(document_id, demo.file_name, body)
        async with SessionLocal() as session:
            await documents_repo.create_document(
                session,
                document_id=document_id,
                owner_id=user.id,
                file_name=demo.file_name,
                content_type="text/plain",
                size_bytes=len(body),
                storage_path=storage_path,
            )
            await session.commit()
        document_ids.append(document_id)

    # Analyze inline so the seeded documents are already completed.
    analyzer = get_analyzer()
    extractor = get_extractor()
    for document_id in document_ids:
        await run_analysis_job(document_id, analyzer=analyzer, extractor=extractor)
    print(f"Seeded {len(document_ids)} demo documents for {DEMO_EMAIL}.")
    return 0


def main() -> int:
    # Surface clear failures and exit non-zero so CI/dev scripts can detect issues.
    try:
        return asyncio.run(seed_demo())
    except Exception as exc:  # noqa: BLE001 - surface any setup or DB errors
        print(f"seed_demo failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
