"""
Default document collaborator.

Rendering contract PDFs and driving the e-signature provider are handled
outside this system. StoredDocumentCollaborator records the artifact the
renderer is expected to write and logs envelope removals, which is what
the lifecycle service and the scheduler need.

The implementation is selected by the DOCUMENT_COLLABORATOR_CLASS setting.

Usage:
    from contracts.collaborators import get_document_collaborator

    artifact = get_document_collaborator().generate_contract_artifact(contract.id)
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from django.conf import settings
from django.utils import timezone
from django.utils.module_loading import import_string

from contracts.models import ArtifactKind, Contract, ContractArtifact

if TYPE_CHECKING:
    from uuid import UUID

    from core.protocols import DocumentCollaborator

logger = logging.getLogger(__name__)


class StoredDocumentCollaborator:
    """Records generated artifacts; envelope deletion is logged only."""

    def generate_contract_artifact(self, contract_id: UUID | str) -> ContractArtifact:
        contract = Contract.objects.get(id=contract_id)
        now = timezone.now()
        artifact = ContractArtifact.objects.create(
            contract=contract,
            kind=ArtifactKind.CONTRACT_PDF,
            storage_key=f"contracts/{contract.id}/contract-{now:%Y%m%d%H%M%S}.pdf",
            expires_at=now + timedelta(days=settings.CONTRACT_ARTIFACT_TTL_DAYS),
        )
        logger.info(
            "Contract artifact recorded",
            extra={"contract_id": str(contract.id), "storage_key": artifact.storage_key},
        )
        return artifact

    def delete_envelope(self, envelope_id: str) -> None:
        logger.info("Signature envelope deletion requested", extra={"envelope_id": envelope_id})


def get_document_collaborator() -> DocumentCollaborator:
    path = getattr(
        settings,
        "DOCUMENT_COLLABORATOR_CLASS",
        "contracts.collaborators.StoredDocumentCollaborator",
    )
    return import_string(path)()
