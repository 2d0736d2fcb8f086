"""Peer-review assessments stored in the Roble ``assestments`` table."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Sequence

from courseven.core.errors import CoursevenError, RemoteError
from courseven.data.records import assessment_from_record, assessment_to_record
from courseven.data.repositories.base import RobleRepository
from courseven.domain.models import Assessment, AssessmentDraft

LOGGER = logging.getLogger("courseven.repositories.assessments")

# Table name as provisioned on the backend.
ASSESSMENTS_TABLE = "assestments"


class RobleAssessmentRepository(RobleRepository[Assessment]):
    table = ASSESSMENTS_TABLE

    def _from_record(self, row: Mapping[str, Any]) -> Assessment:
        return assessment_from_record(row)

    async def _read_assessments(self, query: Mapping[str, str]) -> List[Assessment]:
        try:
            return await self._read(query)
        except RemoteError as exc:
            if exc.status != 500:
                raise
            LOGGER.warning(
                "Assessment read returned 500; treating as empty",
                extra={"query": dict(query)},
            )
            return []

    async def get_assessments_by_activity(self, activity_id: str) -> List[Assessment]:
        return await self._read_assessments({"activity_id": activity_id})

    async def get_assessments_by_group(self, group_id: str) -> List[Assessment]:
        return await self._read_assessments({"group_id": group_id})

    async def get_assessments_by_reviewer(self, activity_id: str, reviewer_id: str) -> List[Assessment]:
        return await self._read_assessments({"activity_id": activity_id, "reviewer": reviewer_id})

    async def get_assessments_received_by_student(
        self, activity_id: str, student_id: str
    ) -> List[Assessment]:
        return await self._read_assessments({"activity_id": activity_id, "reviewed": student_id})

    async def get_assessments_for_student_across_activities(
        self, activity_ids: Sequence[str], student_id: str
    ) -> List[Assessment]:
        received: List[Assessment] = []
        for activity_id in activity_ids:
            received.extend(await self.get_assessments_received_by_student(activity_id, student_id))
        return received

    async def exists_assessment(self, activity_id: str, reviewer_id: str, student_id: str) -> bool:
        rows = await self._read_assessments(
            {"activity_id": activity_id, "reviewer": reviewer_id, "reviewed": student_id}
        )
        return bool(rows)

    async def create_assessment(self, draft: AssessmentDraft) -> Assessment:
        """Insert the assessment and make sure ``overall_score`` is persisted.

        Some backend versions drop ``overall_score`` on insert; the row is then
        patched in a second request. A failed patch is logged and the inserted
        assessment is still returned.
        """
        token = await self._require_token()
        payload = assessment_to_record(draft)
        response = await self._service.insert_records(token, self.table, [payload])
        inserted = response.get("inserted") or response.get("data") or []
        skipped = response.get("skipped") or []
        if skipped:
            LOGGER.info("Assessment insert skipped rows", extra={"skipped": skipped})
        if not isinstance(inserted, list) or not inserted:
            raise CoursevenError(f"Assessment insert returned no rows: {skipped or response}")

        raw: Dict[str, Any] = dict(inserted[0])
        generated_id = raw.get("_id")
        if not generated_id:
            LOGGER.warning("Assessment insert returned no _id")
        if raw.get("overall_score") is None and generated_id:
            try:
                await self._service.update_row(
                    token,
                    self.table,
                    str(generated_id),
                    {"overall_score": payload["overall_score"]},
                )
            except CoursevenError as exc:
                LOGGER.error("Failed to persist overall_score for %s: %s", generated_id, exc)

        for key, value in payload.items():
            if raw.get(key) is None:
                raw[key] = value
        return self._from_record(raw)

    async def list_pending_peer_ids(
        self,
        activity_id: str,
        reviewer_id: str,
        group_member_ids: Sequence[str],
    ) -> List[str]:
        """Group members the reviewer still has to rate on ``activity_id``."""
        peers = [member for member in dict.fromkeys(group_member_ids) if member != reviewer_id]
        if not peers:
            return []
        done = {a.student_id for a in await self.get_assessments_by_reviewer(activity_id, reviewer_id)}
        return [peer for peer in peers if peer not in done]


__all__ = ["ASSESSMENTS_TABLE", "RobleAssessmentRepository"]
